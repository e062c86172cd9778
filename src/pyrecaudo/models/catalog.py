"""Catalog records: sectors, neighbourhoods and user roles."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pyrecaudo.models._base import BackendDatetime, RecaudoBaseModel, RecaudoFormModel, RecordStatus


class Sector(RecaudoBaseModel):
    """Municipal sector."""

    codigo: int | None = Field(default=None, validation_alias=AliasChoices("codSector", "codigo"))
    nombre: str = Field(default="", validation_alias=AliasChoices("nombre", "nombreSector"))
    descripcion: str = ""
    estado: RecordStatus = RecordStatus.ACTIVE
    fecha_registro: BackendDatetime = None
    fecha_modificacion: BackendDatetime = None


class SectorForm(RecaudoFormModel):
    nombre: str = Field(min_length=1)
    descripcion: str | None = None
    cod_usuario: int | None = None


class Barrio(RecaudoBaseModel):
    """Neighbourhood inside a sector."""

    id: int | None = Field(default=None, validation_alias=AliasChoices("codBarrio", "id"))
    nombre: str = ""
    cod_sector: int | None = None
    descripcion: str = ""
    estado: RecordStatus = RecordStatus.ACTIVE
    fecha_registro: BackendDatetime = None

    @property
    def is_active(self) -> bool:
        return self.estado == RecordStatus.ACTIVE


class BarrioForm(RecaudoFormModel):
    nombre: str = Field(min_length=1)
    cod_sector: int = Field(gt=0)
    descripcion: str | None = None


class Rol(RecaudoBaseModel):
    """Console user role (e.g. ``Cajero``, ``Administrador``)."""

    cod_rol: int | None = Field(default=None, validation_alias=AliasChoices("codRol", "id"))
    nombre: str = ""
    descripcion: str = ""
    estado: RecordStatus = RecordStatus.ACTIVE


class RolForm(RecaudoFormModel):
    nombre: str = Field(min_length=1)
    descripcion: str | None = None
