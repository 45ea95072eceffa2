from __future__ import annotations

import logging

import pytest

from src.models.columns import COLUMNS_BY_FIELD
from src.services.errors import OperationFailedError, PartialWriteError, ValidationFailedError
from tests.fakes import AUDIT_SHEET, DATA_SHEET, row_values


def _audit_rows(sheets) -> list[list[str]]:
    return sheets.grids.get(AUDIT_SHEET, [])[1:]


def _col(field: str) -> int:
    return COLUMNS_BY_FIELD[field].index


def _data_writes(sheets) -> list[str]:
    return [t for t in sheets.calls_of("update_values") if t.startswith("'Base Mail'")]


# ---- reads ----

def test_list_decodes_every_row(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="1", nombre="Ana"))
    sheets.add_row(DATA_SHEET, row_values(id="2", nombre="Beto", observacion1="hola"))
    records = service.list()
    assert [r.key for r in records] == ["1", "2"]
    assert [r.row_number for r in records] == [2, 3]
    assert records[1].notes.texts() == ["hola"]
    assert sheets.calls_of("get_values") == ["'Base Mail'!A2:AO"]


def test_list_empty_sheet(service):
    assert service.list() == []


def test_get_by_key(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="1", nombre="Ana", comercial_final="Laura"))
    rec = service.get("1")
    assert rec is not None
    assert rec.get("nombre") == "Ana"
    assert rec.comercial_final == "Laura"
    assert service.get("2") is None


def test_reads_never_touch_audit(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="1"))
    service.list()
    service.get("1")
    service.list_notes("1")
    assert AUDIT_SHEET not in sheets.grids
    assert sheets.calls_of("sheet_titles") == []


@pytest.mark.parametrize("bad", ["", "   ", ":", None])
def test_blank_key_is_validation_failure(service, sheets, bad):
    with pytest.raises(ValidationFailedError):
        service.get(bad)
    with pytest.raises(ValidationFailedError):
        service.add_note(bad, "texto")
    assert sheets.calls == []


# ---- create ----

def test_create_writes_two_ranges_and_leaves_key_blank(service, sheets):
    rec = service.create({"nombre": "Ana", "mail": "ana@example.com", "presupuesto": "1000"})
    assert rec.row_number == 2
    assert rec.key == ""
    assert rec.get("estado") == ""
    assert rec.comercial_final == ""
    assert sheets.calls_of("append_values")[0] == "'Base Mail'!B:P"
    assert "'Base Mail'!S2:V2" in sheets.calls_of("update_values")
    assert sheets.cell(DATA_SHEET, 2, _col("nombre")) == "Ana"
    assert sheets.cell(DATA_SHEET, 2, _col("presupuesto")) == "1000"
    assert sheets.cell(DATA_SHEET, 2, _col("id")) == ""
    assert sheets.cell(DATA_SHEET, 2, _col("estado")) == ""


def test_create_audits_each_non_empty_field(service, sheets, clock):
    service.create({"nombre": "Ana", "mail": "ana@example.com", "lugar": ""})
    rows = _audit_rows(sheets)
    assert [r[3] for r in rows] == ["Nombre", "Mail"]
    for r in rows:
        assert r[0] == clock.stamp()
        assert r[1] == ""  # key not assigned yet
        assert r[2] == "2"
        assert r[4] == ""
        assert r[6:8] == ["tester", "test"]


def test_create_uses_explicit_actor(service, sheets):
    service.create({"nombre": "Ana"}, actor="maria")
    assert _audit_rows(sheets)[0][6] == "maria"


def test_create_ignores_read_only_fields(service, sheets, caplog):
    caplog.set_level(logging.WARNING)
    service.create({"nombre": "Ana", "estado": "Confirmado", "sector": "Norte", "id": "99"})
    assert sheets.cell(DATA_SHEET, 2, _col("estado")) == ""
    assert sheets.cell(DATA_SHEET, 2, _col("sector")) == ""
    assert sheets.cell(DATA_SHEET, 2, _col("id")) == ""
    assert [r[3] for r in _audit_rows(sheets)] == ["Nombre"]
    assert "ignoring read-only fields" in caplog.text


def test_create_validation(service, sheets):
    with pytest.raises(ValidationFailedError):
        service.create({})
    with pytest.raises(ValidationFailedError):
        service.create({"nombre": "  "})
    with pytest.raises(ValidationFailedError):
        service.create({"estado": "Confirmado"})
    with pytest.raises(ValidationFailedError, match="unknown fields"):
        service.create({"nombre": "Ana", "apellido": "Gómez"})
    assert sheets.calls == []


def test_create_partial_write_is_reported_not_rolled_back(service, sheets, error_log):
    sheets.fail("update_values")
    with pytest.raises(PartialWriteError) as e:
        service.create({"nombre": "Ana", "presupuesto": "1000"})
    assert e.value.row == 2
    assert "nombre" in e.value.written
    assert sheets.cell(DATA_SHEET, 2, _col("nombre")) == "Ana"
    assert sheets.cell(DATA_SHEET, 2, _col("presupuesto")) == ""
    assert AUDIT_SHEET not in sheets.grids
    records = error_log.records
    assert [(r.operation, r.error_type, r.row) for r in records] == [("create", "PARTIAL_WRITE", 2)]


def test_create_first_write_failure(service, sheets, error_log):
    sheets.fail("append_values")
    with pytest.raises(OperationFailedError) as e:
        service.create({"nombre": "Ana"})
    assert not isinstance(e.value, PartialWriteError)
    assert len(sheets.grids[DATA_SHEET]) == 1
    assert error_log.records[0].error_type == "OPERATION_FAILED"


# ---- update ----

def test_update_merges_and_audits_changes(service, sheets, clock):
    sheets.add_row(DATA_SHEET, row_values(id="7", nombre="Ana", mail="old@example.com"))
    rec = service.update("7", {"mail": "new@example.com", "telefono": "555"})
    assert rec.get("nombre") == "Ana"
    assert rec.get("mail") == "new@example.com"
    assert sheets.cell(DATA_SHEET, 2, _col("mail")) == "new@example.com"
    assert sorted(_data_writes(sheets)) == ["'Base Mail'!B2:P2", "'Base Mail'!S2:V2"]
    rows = _audit_rows(sheets)
    assert [(r[1], r[3], r[4], r[5]) for r in rows] == [
        ("7", "Teléfono", "", "555"),
        ("7", "Mail", "old@example.com", "new@example.com"),
    ]


def test_update_same_value_produces_no_entry(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7", nombre="Ana"))
    rec = service.update("7", {"nombre": "Ana"})
    assert rec is not None
    assert sheets.calls_of("update_values") == []
    assert AUDIT_SHEET not in sheets.grids


def test_update_unknown_key(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    assert service.update("8", {"nombre": "Ana"}) is None
    assert sheets.calls_of("update_values") == []


def test_update_status_is_not_written(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7", nombre="Ana"))
    rec = service.update("7", {"estado": "Confirmado"})
    assert rec.get("estado") == ""
    assert sheets.cell(DATA_SHEET, 2, _col("estado")) == ""
    assert sheets.calls_of("update_values") == []
    assert service.list_audit("7") == []


def test_update_never_writes_protected_block(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7", sector="Norte", vendedor_comercial_asignado="Luis"))
    rec = service.update("7", {"sector": "Sur", "vendedor_comercial_asignado": "Otro", "canal": "web"})
    assert rec.get("sector") == "Norte"
    assert sheets.cell(DATA_SHEET, 2, _col("sector")) == "Norte"
    assert sheets.cell(DATA_SHEET, 2, _col("vendedor_comercial_asignado")) == "Luis"
    for target in sheets.calls_of("update_values"):
        assert "Q" not in target.split("!")[1] and "R" not in target.split("!")[1]
    assert [r[3] for r in _audit_rows(sheets)] == ["Canal"]


def test_update_stamps_schedule_once(service, sheets, clock):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    first = clock.stamp()
    rec = service.update("7", {"horario_inicio_evento": "20:00"})
    assert rec.get("marca_temporal") == first
    assert sheets.cell(DATA_SHEET, 2, _col("marca_temporal")) == first

    clock.advance(hours=2)
    rec = service.update("7", {"horario_inicio_evento": "21:00"})
    assert rec.get("marca_temporal") == first
    assert [r[3] for r in _audit_rows(sheets)].count("Marca Temporal") == 1


def test_update_end_time_also_stamps(service, sheets, clock):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    rec = service.update("7", {"horario_finalizacion_evento": "23:00"})
    assert rec.get("marca_temporal") == clock.stamp()


def test_update_without_schedule_does_not_stamp(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    rec = service.update("7", {"nombre": "Ana", "horario_inicio_evento": ""})
    assert rec.get("marca_temporal") == ""


def test_update_stamps_budget_sent_once(service, sheets, clock):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    first = clock.stamp()
    rec = service.update("7", {"presupuesto": "1500"})
    assert rec.get("fecha_presup_enviado") == first
    clock.advance(days=1)
    rec = service.update("7", {"presupuesto": "1800"})
    assert rec.get("fecha_presup_enviado") == first


def test_update_empty_budget_does_not_stamp(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7", presupuesto="100"))
    rec = service.update("7", {"presupuesto": ""})
    assert rec.get("fecha_presup_enviado") == ""


def test_update_rejection_reason_written_to_own_cell(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7", nombre="Ana"))
    rec = service.update("7", {}, rejection_reason="Sin disponibilidad")
    assert rec.motivo_rechazo == "Sin disponibilidad"
    assert _data_writes(sheets) == ["'Base Mail'!AO2:AO2"]
    assert sheets.cell(DATA_SHEET, 2, _col("motivo_rechazo")) == "Sin disponibilidad"
    rows = _audit_rows(sheets)
    assert [(r[3], r[4], r[5], r[8]) for r in rows] == [
        ("Motivo Rechazo", "", "Sin disponibilidad", "Sin disponibilidad")
    ]


def test_update_rejection_reason_note_on_every_entry(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    service.update("7", {"canal": "mail"}, rejection_reason="Presupuesto alto")
    rows = _audit_rows(sheets)
    assert [r[3] for r in rows] == ["Canal", "Motivo Rechazo"]
    assert {r[8] for r in rows} == {"Presupuesto alto"}


def test_update_nothing_to_do_is_validation_failure(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    with pytest.raises(ValidationFailedError):
        service.update("7", {})
    with pytest.raises(ValidationFailedError):
        service.update("7", {"color": "rojo"})


def test_update_second_range_failure_is_partial(service, sheets, error_log):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    sheets.fail("update_values", nth=2)
    with pytest.raises(PartialWriteError):
        service.update("7", {"nombre": "Ana", "demora": "3"})
    assert sheets.cell(DATA_SHEET, 2, _col("nombre")) == "Ana"
    assert sheets.cell(DATA_SHEET, 2, _col("demora")) == ""
    assert AUDIT_SHEET not in sheets.grids
    assert error_log.records[0].error_type == "PARTIAL_WRITE"
    assert error_log.records[0].key == "7"


def test_update_audit_failure_keeps_data(service, sheets, error_log):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    sheets.fail("sheet_titles")
    with pytest.raises(OperationFailedError):
        service.update("7", {"nombre": "Ana"})
    assert sheets.cell(DATA_SHEET, 2, _col("nombre")) == "Ana"
    assert [r.error_type for r in error_log.records] == ["AUDIT_WRITE_FAILED"]


def test_read_failure_surfaces_as_operation_failed(service, sheets, error_log):
    sheets.fail("get_values")
    with pytest.raises(OperationFailedError):
        service.get("7")
    assert error_log.records[0].operation == "get"


# ---- audit ----

def test_list_audit_newest_first(service, sheets, clock):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    service.update("7", {"nombre": "Ana"})
    clock.advance(minutes=5)
    service.update("7", {"nombre": "Ana María"})
    history = service.list_audit(":7")
    assert [(e.before, e.after) for e in history] == [("Ana", "Ana María"), ("", "Ana")]
    assert history[0].actor == "tester"
    assert history[0].origin == "test"


def test_list_audit_same_second_latest_first(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    service.update("7", {"nombre": "Ana"})
    service.update("7", {"nombre": "Ana María"})
    history = service.list_audit("7")
    assert [(e.before, e.after) for e in history] == [("Ana", "Ana María"), ("", "Ana")]


def test_audit_values_are_stored_verbatim(service, sheets):
    sheets.add_row(DATA_SHEET, row_values(id="7"))
    service.update("7", {"telefono": "0115551234", "observacion": "=1+1"})
    audit_writes = [opt for target, opt in sheets.input_options if target.startswith("'Auditoria'")]
    assert audit_writes and set(audit_writes) == {"RAW"}
    assert [r[5] for r in _audit_rows(sheets)] == ["0115551234", "=1+1"]


# ---- create with an empty first block ----

def test_create_with_empty_first_block_gets_its_own_row(service, sheets):
    first = service.create({"presupuesto": "1000"})
    second = service.create({"nombre": "Ana"})
    assert first.row_number == 2
    assert second.row_number == 2  # inserted above the row with an empty B:P
    rows = service.list()
    assert len(rows) == 2
    by_name = {r.get("nombre"): r for r in rows}
    assert by_name["Ana"].get("presupuesto") == ""
    assert by_name[""].get("presupuesto") == "1000"
    assert by_name[""].row_number != by_name["Ana"].row_number
