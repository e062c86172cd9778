"""Example record models for the collections backend."""

from pyrecaudo.models._base import (
    BackendDatetime,
    RecaudoBaseModel,
    RecaudoFormModel,
    RecordStatus,
    parse_backend_datetime,
)
from pyrecaudo.models.catalog import Barrio, BarrioForm, Rol, RolForm, Sector, SectorForm
from pyrecaudo.models.contribuyente import Contribuyente, ContribuyenteForm

__all__ = [
    "BackendDatetime",
    "Barrio",
    "BarrioForm",
    "Contribuyente",
    "ContribuyenteForm",
    "RecaudoBaseModel",
    "RecaudoFormModel",
    "RecordStatus",
    "Rol",
    "RolForm",
    "Sector",
    "SectorForm",
    "parse_backend_datetime",
]
