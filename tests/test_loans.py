#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_loans
    ~~~~~~~~~~~~~~~~

    Loan creation: validation, stock checks and persistence.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details.
"""

import datetime
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from inventario.core.prestamos import LoanLedger
from inventario.core.models import (
    Prestamo,
    DetallePrestamo,
    EstadoActivo,
    EstadoPrestamo,
    TipoUsuario,
    User,
)
from inventario.core.exceptions import (
    ValidationError,
    StaleSessionError,
    PrestamoNotFoundError,
    ItemNotFoundError,
    StockUnavailableError,
    AssetNotLendableError,
)
from inventario.core.utils import utcnow

def count_loans(db_session):
    return db_session.execute(select(func.count()).select_from(Prestamo)).scalar()

def test_create_loan(db_session, make_item, make_part, lend, staff):
    item = make_item()
    pieza = make_part(cantidad=5)
    prestamo = lend({"item_id": item.id}, {"pieza_id": pieza.id, "cantidad": 2})

    assert prestamo.id is not None
    assert prestamo.estado == EstadoPrestamo.VIGENTE
    assert prestamo.tipo_usuario == TipoUsuario.ESTUDIANTE
    assert prestamo.user_id_salida == staff.id
    assert prestamo.fecha_salida is not None
    assert prestamo.fecha_real_entrega is None
    assert prestamo.user_id_entrega is None
    assert [(d.item_id, d.pieza_id, d.cantidad, d.devuelto) for d in prestamo.detalles] == [
        (item.id, None, 1, False),
        (None, pieza.id, 2, False),
    ]

def test_lending_does_not_change_asset_status(db_session, make_item, lend):
    item = make_item()
    lend({"item_id": item.id})
    db_session.refresh(item)
    assert item.estado == EstadoActivo.DISPONIBLE

def test_loan_is_readable_after_creation(db_session, make_part, lend):
    pieza = make_part(cantidad=5)
    prestamo = lend({"pieza_id": pieza.id, "cantidad": 1})
    loaded = LoanLedger.get_loan(prestamo.id, db_session=db_session)
    assert loaded.id == prestamo.id
    assert loaded.detalles[0].pieza.nombre == pieza.nombre
    assert [p.id for p in LoanLedger.list_loans(db_session=db_session)] == [prestamo.id]

def test_unknown_loan(db_session):
    with pytest.raises(PrestamoNotFoundError):
        LoanLedger.get_loan(404, db_session=db_session)

def test_requesting_more_than_available_fails(db_session, make_part, lend):
    pieza = make_part(cantidad=5)
    with pytest.raises(StockUnavailableError):
        lend({"pieza_id": pieza.id, "cantidad": 6})
    assert count_loans(db_session) == 0

def test_second_borrower_cannot_overdraw(db_session, make_part, lend):
    pieza = make_part(cantidad=5)
    lend({"pieza_id": pieza.id, "cantidad": 3})
    with pytest.raises(StockUnavailableError):
        lend({"pieza_id": pieza.id, "cantidad": 3})
    assert count_loans(db_session) == 1
    assert LoanLedger.availability("Pieza", pieza.id, db_session=db_session) == 2

def test_repeated_lines_are_checked_together(db_session, make_part, lend):
    pieza = make_part(cantidad=5)
    with pytest.raises(StockUnavailableError):
        lend({"pieza_id": pieza.id, "cantidad": 3}, {"pieza_id": pieza.id, "cantidad": 3})
    assert count_loans(db_session) == 0

def test_loaned_item_cannot_be_lent_again(db_session, make_item, lend):
    item = make_item()
    lend({"item_id": item.id})
    with pytest.raises(StockUnavailableError):
        lend({"item_id": item.id})

def test_one_bad_line_rejects_the_whole_loan(db_session, make_item, make_part, lend):
    item = make_item()
    pieza = make_part(cantidad=1)
    with pytest.raises(StockUnavailableError):
        lend({"item_id": item.id}, {"pieza_id": pieza.id, "cantidad": 2})
    assert count_loans(db_session) == 0
    assert LoanLedger.availability("Item", item.id, db_session=db_session) == 1

@pytest.mark.parametrize("estado", [
    EstadoActivo.DANADO,
    EstadoActivo.PERDIDO,
    EstadoActivo.MANTENIMIENTO,
    EstadoActivo.MALO,
    EstadoActivo.BAJA,
])
def test_non_lendable_item(db_session, make_item, lend, estado):
    item = make_item(estado=estado)
    with pytest.raises(AssetNotLendableError):
        lend({"item_id": item.id})

def test_non_lendable_part(db_session, make_part, lend):
    pieza = make_part(cantidad=5, estado=EstadoActivo.DANADO)
    with pytest.raises(AssetNotLendableError):
        lend({"pieza_id": pieza.id, "cantidad": 1})

def test_unknown_item(db_session, plantilla, lend):
    with pytest.raises(ItemNotFoundError):
        lend({"item_id": 31337})

@pytest.mark.parametrize("detalle", [
    {"item_id": 1, "pieza_id": 1},
    {"cantidad": 1},
    {"item_id": 1, "cantidad": 2},
    {"pieza_id": 1, "cantidad": 0},
    {"pieza_id": 1, "cantidad": -3},
    {"pieza_id": 1, "cantidad": "dos"},
])
def test_malformed_lines(db_session, make_item, make_part, lend, detalle):
    make_item()
    make_part()
    with pytest.raises(ValidationError):
        lend(detalle)

def test_empty_loan(db_session, staff, lend):
    with pytest.raises(ValidationError):
        lend()

def test_unknown_borrower_type(db_session, make_item, lend):
    item = make_item()
    with pytest.raises(ValidationError):
        lend({"item_id": item.id}, tipo_usuario="Docente")

def test_missing_borrower_name(db_session, make_item, staff, due):
    item = make_item()
    with pytest.raises(ValidationError):
        LoanLedger.create_loan(
            "Externo", "CI-1", "   ", due, staff.id, [{"item_id": item.id}],
            db_session=db_session)

def test_due_date_in_the_past(db_session, make_item, staff):
    item = make_item()
    yesterday = (utcnow().date() - datetime.timedelta(days=1)).isoformat()
    with pytest.raises(ValidationError):
        LoanLedger.create_loan(
            "Estudiante", "RU-1", "Eva", yesterday, staff.id, [{"item_id": item.id}],
            db_session=db_session)

def test_due_date_must_parse(db_session, make_item, staff):
    item = make_item()
    with pytest.raises(ValidationError):
        LoanLedger.create_loan(
            "Estudiante", "RU-1", "Eva", "next friday", staff.id, [{"item_id": item.id}],
            db_session=db_session)

def test_due_today_is_allowed(db_session, make_item, staff):
    item = make_item()
    prestamo = LoanLedger.create_loan(
        "Estudiante", "RU-1", "Eva", utcnow().date().isoformat(), staff.id,
        [{"item_id": item.id}], db_session=db_session)
    assert prestamo.estado == EstadoPrestamo.VIGENTE

def test_stale_staff_session(db_session, make_item, due):
    item = make_item()
    with pytest.raises(StaleSessionError):
        LoanLedger.create_loan(
            "Estudiante", "RU-1", "Eva", due, "deleted-user", [{"item_id": item.id}],
            db_session=db_session)
    assert count_loans(db_session) == 0

def test_line_needs_exactly_one_target_in_the_database(db_session, make_item, make_part, lend):
    item = make_item()
    pieza = make_part(item=item)
    prestamo = lend({"item_id": item.id})
    db_session.add(DetallePrestamo(
        prestamo_id=prestamo.id, item_id=item.id, pieza_id=pieza.id, cantidad=1))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

def test_line_quantity_must_be_positive_in_the_database(db_session, make_part, lend):
    pieza = make_part()
    prestamo = lend({"pieza_id": pieza.id, "cantidad": 1})
    db_session.add(DetallePrestamo(prestamo_id=prestamo.id, pieza_id=pieza.id, cantidad=0))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

def test_user_exists_is_a_boolean(db_session, staff):
    assert User.exists(staff.id, db_session) is True
    assert User.exists("deleted-user", db_session) is False
    assert User.exists(None, db_session) is False
