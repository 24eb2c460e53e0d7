#!/usr/bin/env python

"""
    Incident reports (novedades) for Inventario,
    including the follow-up reports created when a loan comes back degraded.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from typing import Iterable, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from inventario.core import catalog, events
from inventario.core.db import session as default_session
from inventario.core.models import (
    Novedad,
    DetalleNovedadPieza,
    EstadoActivo,
    TipoNovedad,
    TipoObjetivo,
    User,
)
from inventario.core.exceptions import (
    InventarioAPIError,
    ValidationError,
    NotFoundError,
    DatabaseInsertError,
)
from inventario.core.utils import blank, positive_int

logger = logging.getLogger(__name__)

RETURN_DESCRIPTION = "Reported during loan return: {}"
RETURN_NO_OBSERVATION = "no additional description"
RETURN_PART_DESCRIPTION = "Damaged while on loan"


def record_incident(tipo, descripcion: str, item_id: int, user_id: str,
                    item_nuevo_estado=None, detalles: Optional[Iterable[dict]] = None,
                    db_session=None) -> Novedad:
    """
    Record an incident against an item and, optionally, some of its parts.

    Args:
        tipo: A TipoNovedad (or its value, e.g. "Dañado").
        descripcion: Free text describing what happened.
        item_id: The affected item.
        user_id: Staff user reporting the incident.
        item_nuevo_estado: New status for the item, if it changes.
        detalles: Dicts with ``pieza_id`` and optional ``cantidad``,
            ``nuevo_estado`` and ``descripcion``.

    Returns:
        The persisted Novedad.

    Raises:
        ValidationError: Unknown type/status or empty description.
        NotFoundError: Unknown item, user, or a part not belonging to the item.
        DatabaseInsertError: The insert failed and was rolled back.
    """
    db = db_session or default_session
    tipo = catalog.coerce_enum(TipoNovedad, tipo, "incident type")
    if blank(descripcion):
        raise ValidationError("Incident description is required")
    if item_nuevo_estado is not None:
        item_nuevo_estado = catalog.coerce_enum(EstadoActivo, item_nuevo_estado, "item status")

    item = catalog.get_item(item_id, db_session=db)
    if not User.exists(user_id, db):
        raise NotFoundError(f"User {user_id} not found")

    novedad = Novedad(
        tipo=tipo,
        descripcion=descripcion.strip(),
        item_id=item.id,
        user_id=user_id,
        item_nuevo_estado=item_nuevo_estado,
    )
    part_updates = []
    for d in detalles or []:
        pieza = catalog.get_part(d.get("pieza_id"), db_session=db)
        if pieza.item_id != item.id:
            raise NotFoundError(f"Part {pieza.id} does not belong to item {item.id}")
        nuevo_estado = d.get("nuevo_estado")
        if nuevo_estado is not None:
            nuevo_estado = catalog.coerce_enum(EstadoActivo, nuevo_estado, "part status")
            part_updates.append((pieza.id, nuevo_estado))
        cantidad = d.get("cantidad")
        if cantidad is not None:
            cantidad = positive_int(cantidad, "Incident part quantity")
        novedad.detalles.append(DetalleNovedadPieza(
            pieza_id=pieza.id,
            cantidad=cantidad,
            nuevo_estado=nuevo_estado,
            descripcion=d.get("descripcion"),
        ))

    try:
        db.add(novedad)
        db.flush()
        if item_nuevo_estado is not None:
            catalog.set_item_status(item.id, item_nuevo_estado, db_session=db)
        for pieza_id, nuevo_estado in part_updates:
            catalog.set_part_status(pieza_id, nuevo_estado, db_session=db)
        db.commit()
    except InventarioAPIError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to record incident")
        raise DatabaseInsertError(f"Failed to create incident record: {str(e)}.")
    logger.info(f"Recorded {tipo.value} incident {novedad.id} for item {item.id}")
    return novedad


def list_incidents(item_id: Optional[int] = None, db_session=None):
    db = db_session or default_session
    query = (
        select(Novedad)
        .options(selectinload(Novedad.detalles), selectinload(Novedad.usuario))
        .order_by(Novedad.fecha.desc(), Novedad.id.desc())
    )
    if item_id is not None:
        query = query.where(Novedad.item_id == item_id)
    return db.execute(query).scalars().all()


def record_return_incident(line: events.DegradedLine, db_session=None):
    """Files the incident for one line that came back degraded."""
    estado = line.estado_devolucion.value
    kwargs = {}
    if line.tipo_objetivo == TipoObjetivo.PIEZA:
        kwargs["detalles"] = [{
            "pieza_id": line.pieza_id,
            "cantidad": line.cantidad,
            "nuevo_estado": estado,
            "descripcion": RETURN_PART_DESCRIPTION,
        }]
    else:
        kwargs["item_nuevo_estado"] = estado
    return record_incident(
        tipo=estado,
        descripcion=RETURN_DESCRIPTION.format(line.observacion or RETURN_NO_OBSERVATION),
        item_id=line.item_id,
        user_id=line.user_id,
        db_session=db_session,
        **kwargs
    )

events.subscribe(events.DegradedLine, record_return_incident)
