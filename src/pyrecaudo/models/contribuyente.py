"""Taxpayer records."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from pyrecaudo.models._base import BackendDatetime, RecaudoBaseModel, RecaudoFormModel, RecordStatus


class Contribuyente(RecaudoBaseModel):
    """A registered taxpayer.

    Only the identifying fields the console lists are modelled; any extra
    keys the backend sends are ignored.
    """

    cod_contribuyente: int | None = Field(
        default=None,
        validation_alias=AliasChoices("codContribuyente", "codigo", "id"),
    )
    tipo_documento: str = ""
    numero_documento: str = ""
    nombre_completo: str = Field(default="", validation_alias=AliasChoices("nombreCompleto", "nombre"))
    direccion: str = ""
    telefono: str = ""
    estado: RecordStatus = RecordStatus.ACTIVE
    fecha_registro: BackendDatetime = None


class ContribuyenteForm(RecaudoFormModel):
    tipo_documento: str = Field(min_length=1)
    numero_documento: str = Field(min_length=1)
    nombre_completo: str = Field(min_length=1)
    direccion: str | None = None
    telefono: str | None = None

    @field_validator("numero_documento")
    @classmethod
    def _digits_only(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError("numero_documento must contain digits only")
        return value
