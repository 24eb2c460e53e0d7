#!/usr/bin/env python

"""
    Asset catalog for Inventario.

    Read access to items and parts, their stock, and the only write path
    for their ``estado``. Functions here never commit; the caller owns
    the transaction.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from sqlalchemy import select, func
from inventario.core.db import session as default_session
from inventario.core.models import (
    Item,
    Pieza,
    Prestamo,
    DetallePrestamo,
    EstadoActivo,
    EstadoPrestamo,
    TipoObjetivo,
)
from inventario.core.exceptions import (
    ValidationError,
    ItemNotFoundError,
    PiezaNotFoundError,
)

logger = logging.getLogger(__name__)

def _db(db_session):
    return db_session or default_session

def coerce_enum(enum_cls, value, field):
    """Returns the enum member for ``value`` or raises ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field} {value!r}; expected one of: {allowed}")

def get_item(item_id, db_session=None):
    if item := _db(db_session).get(Item, item_id):
        return item
    raise ItemNotFoundError(f"Item {item_id} not found")

def get_part(pieza_id, db_session=None):
    if pieza := _db(db_session).get(Pieza, pieza_id):
        return pieza
    raise PiezaNotFoundError(f"Part {pieza_id} not found")

def get_target(tipo, target_id, db_session=None):
    tipo = coerce_enum(TipoObjetivo, tipo, "target type")
    if tipo == TipoObjetivo.ITEM:
        return get_item(target_id, db_session=db_session)
    return get_part(target_id, db_session=db_session)

def lock_target(tipo, target_id, db_session=None):
    """Loads the target row with a row lock held until the transaction ends."""
    tipo = coerce_enum(TipoObjetivo, tipo, "target type")
    model = Item if tipo == TipoObjetivo.ITEM else Pieza
    target = _db(db_session).execute(
        select(model)
        .where(model.id == target_id)
        .with_for_update()
    ).scalar_one_or_none()
    if target is None:
        error = ItemNotFoundError if model is Item else PiezaNotFoundError
        raise error(f"{tipo.value} {target_id} not found")
    return target

def total_stock(tipo, target_id, db_session=None):
    return get_target(tipo, target_id, db_session=db_session).stock_total

def count_outstanding_loans_for(tipo, target_id, db_session=None):
    """Quantity of the target currently out on active loans."""
    tipo = coerce_enum(TipoObjetivo, tipo, "target type")
    column = DetallePrestamo.item_id if tipo == TipoObjetivo.ITEM else DetallePrestamo.pieza_id
    outstanding = _db(db_session).execute(
        select(func.coalesce(func.sum(DetallePrestamo.cantidad), 0))
        .select_from(DetallePrestamo)
        .join(Prestamo, DetallePrestamo.prestamo_id == Prestamo.id)
        .where(
            column == target_id,
            DetallePrestamo.devuelto == False,
            Prestamo.estado == EstadoPrestamo.VIGENTE,
        )
    ).scalar()
    return int(outstanding or 0)

def set_item_status(item_id, status, db_session=None):
    status = coerce_enum(EstadoActivo, status, "item status")
    db = _db(db_session)
    item = get_item(item_id, db_session=db)
    if item.estado != status:
        logger.info(f"Item {item_id} status {item.estado.value} -> {status.value}")
        item.estado = status
        db.flush()
    return item

def set_part_status(pieza_id, status, db_session=None):
    status = coerce_enum(EstadoActivo, status, "part status")
    db = _db(db_session)
    pieza = get_part(pieza_id, db_session=db)
    if pieza.estado != status:
        logger.info(f"Part {pieza_id} status {pieza.estado.value} -> {status.value}")
        pieza.estado = status
        db.flush()
    return pieza
