"""Base model for backend records.

Every record model inherits from :class:`RecaudoBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map automatically to
  snake_case fields, and ``model_dump(by_alias=True)`` writes them back.
* A ``model_validator(mode="before")`` that drops empty strings and
  ``None`` so the field default is used instead.
* A ``searchable_text()`` projection used by client-side search.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def parse_backend_datetime(value: Any) -> datetime | None:
    """Accept ISO strings, ``datetime`` objects and epoch milliseconds.

    Returns ``None`` for missing values.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000 if value > 1e11 else value).astimezone()
    return datetime.fromisoformat(str(value))


BackendDatetime = Annotated[datetime | None, BeforeValidator(parse_backend_datetime)]
"""Annotated type that coerces backend timestamps to datetimes."""


class RecordStatus(StrEnum):
    ACTIVE = "ACTIVO"
    INACTIVE = "INACTIVO"


class RecaudoBaseModel(BaseModel):
    """Base for records exchanged with the collections backend."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {
            key: value
            for key, value in values.items()
            if value is not None and not (isinstance(value, str) and not value.strip())
        }

    def searchable_text(self) -> str:
        """Lower-cased JSON projection of every field, for substring search."""
        return self.model_dump_json(by_alias=True).lower()


class RecaudoFormModel(BaseModel):
    """Base for create/update payloads (form submissions)."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
