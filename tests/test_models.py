"""Tests for record models built on RecaudoBaseModel."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from pyrecaudo.models import (
    Barrio,
    BarrioForm,
    Contribuyente,
    ContribuyenteForm,
    RecordStatus,
    Rol,
    Sector,
    parse_backend_datetime,
)
from pyrecaudo.store.policy import canonical_text, filter_items


class TestRecaudoBaseModel:
    def test_camel_case_keys_map_to_fields(self) -> None:
        barrio = Barrio.model_validate({"codBarrio": 4, "nombre": "San Martín", "codSector": 2})
        assert barrio.id == 4
        assert barrio.cod_sector == 2
        assert barrio.is_active

    def test_empty_strings_fall_back_to_defaults(self) -> None:
        sector = Sector.model_validate({"codigo": 1, "nombre": "Centro", "estado": "", "descripcion": None})
        assert sector.estado == RecordStatus.ACTIVE
        assert sector.descripcion == ""

    def test_unknown_keys_ignored(self) -> None:
        rol = Rol.model_validate({"codRol": 1, "nombre": "Cajero", "permisos": ["caja"]})
        assert rol.cod_rol == 1

    def test_dump_by_alias_round_trips(self) -> None:
        original = Contribuyente.model_validate(
            {"codContribuyente": 10, "numeroDocumento": "40506070", "nombreCompleto": "Ana Quispe"}
        )
        dumped = original.model_dump(by_alias=True, mode="json")
        assert dumped["numeroDocumento"] == "40506070"
        assert Contribuyente.model_validate(dumped) == original

    def test_searchable_text_is_lowercase_json(self) -> None:
        rol = Rol(cod_rol=1, nombre="Cajero")
        assert '"nombre":"cajero"' in rol.searchable_text()

    def test_models_are_frozen(self) -> None:
        with pytest.raises(ValidationError):
            Rol(cod_rol=1, nombre="Cajero").nombre = "x"  # type: ignore[misc]


class TestForms:
    def test_barrio_form_requires_sector(self) -> None:
        with pytest.raises(ValidationError):
            BarrioForm(nombre="Norte", cod_sector=0)

    def test_contribuyente_form_payload(self) -> None:
        form = ContribuyenteForm(tipo_documento="DNI", numero_documento="40506070", nombre_completo=" Ana ")
        assert form.to_payload() == {
            "tipoDocumento": "DNI",
            "numeroDocumento": "40506070",
            "nombreCompleto": "Ana",
        }

    def test_contribuyente_form_rejects_non_digit_document(self) -> None:
        with pytest.raises(ValidationError):
            ContribuyenteForm(tipo_documento="DNI", numero_documento="40A", nombre_completo="Ana")


class TestTimestamps:
    def test_iso_string(self) -> None:
        assert parse_backend_datetime("2026-01-01T00:00:00+00:00") == datetime(2026, 1, 1, tzinfo=UTC)

    def test_epoch_milliseconds(self) -> None:
        parsed = parse_backend_datetime(1_767_225_600_000)
        assert parsed is not None
        assert parsed.timestamp() == 1_767_225_600

    def test_none(self) -> None:
        assert parse_backend_datetime(None) is None


class TestClientSideSearch:
    def test_filter_matches_any_field_case_insensitively(self) -> None:
        roles = [Rol(cod_rol=1, nombre="Cajero"), Rol(cod_rol=2, nombre="Fiscalizador", descripcion="apoyo a CAJERO")]
        assert filter_items(roles, "cajero") == roles
        assert filter_items(roles, "fiscal") == roles[1:]

    def test_plain_dicts_and_accents(self) -> None:
        records = [{"nombre": "Señor de Luren"}, {"nombre": "Centro"}]
        assert filter_items(records, "SEÑOR") == records[:1]
        assert "señor" in canonical_text(records[0])

    def test_unserializable_items_fall_back_to_str(self) -> None:
        class _Opaque:
            def __str__(self) -> str:
                return "Opaque Cajero"

        assert filter_items([_Opaque()], "cajero")
