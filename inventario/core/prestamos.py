#!/usr/bin/env python

"""
    Loan ledger for Inventario,
    including availability accounting, loan creation and the return
    state machine.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from collections import defaultdict
from collections.abc import Mapping
from typing import Iterable, List
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from inventario.core import catalog, events
from inventario.core.db import session as default_session
from inventario.core.models import (
    Prestamo,
    DetallePrestamo,
    EstadoDevolucion,
    EstadoPrestamo,
    TipoObjetivo,
    TipoUsuario,
    User,
)
from inventario.core.exceptions import (
    STALE_SESSION,
    InventarioAPIError,
    ValidationError,
    StaleSessionError,
    PrestamoNotFoundError,
    DetalleNotFoundError,
    StockUnavailableError,
    AssetNotLendableError,
    AvailabilityIntegrityError,
    DatabaseInsertError,
)
from inventario.core.utils import utcnow, as_date, blank, positive_int

logger = logging.getLogger(__name__)


class LoanLedger:

    @classmethod
    def availability(cls, tipo, target_id, reservado=0, db_session=None) -> int:
        """
        Units of an item or part that can still be lent out.

        Stock minus the quantity on outstanding lines of active loans,
        minus ``reservado`` (units the caller holds in an uncommitted cart).

        Raises:
            NotFoundError: If the target does not exist.
            AvailabilityIntegrityError: If more units are out than exist.
            StockUnavailableError: If ``reservado`` exceeds what is left.
        """
        db = db_session or default_session
        tipo = catalog.coerce_enum(TipoObjetivo, tipo, "target type")
        reservado = positive_int(reservado, "Reserved quantity") if reservado else 0
        stock = catalog.total_stock(tipo, target_id, db_session=db)
        outstanding = catalog.count_outstanding_loans_for(tipo, target_id, db_session=db)
        available = stock - outstanding
        if available < 0:
            raise AvailabilityIntegrityError(
                f"{tipo.value} {target_id} has {outstanding} units on loan "
                f"but only {stock} in stock")
        if reservado > available:
            raise StockUnavailableError(
                f"{tipo.value} {target_id}: reserved {reservado}, available {available}")
        return available - reservado

    @classmethod
    def item_availability(cls, item_id, db_session=None) -> dict:
        """Availability of an item and of each of its parts."""
        db = db_session or default_session
        item = catalog.get_item(item_id, db_session=db)
        return {
            "item_id": item.id,
            "codigo": item.codigo,
            "estado": item.estado.value,
            "disponible": cls.availability(TipoObjetivo.ITEM, item.id, db_session=db),
            "piezas": [{
                "pieza_id": pieza.id,
                "nombre": pieza.nombre,
                "estado": pieza.estado.value,
                "cantidad": pieza.cantidad,
                "disponible": cls.availability(TipoObjetivo.PIEZA, pieza.id, db_session=db),
            } for pieza in sorted(item.piezas, key=lambda p: p.id)]
        }

    @classmethod
    def create_loan(cls, tipo_usuario, usuario_identificador: str, usuario_nombre: str,
                    fecha_estimada_entrega, user_id_salida: str, detalles: Iterable[Mapping],
                    db_session=None) -> Prestamo:
        """
        Lend items and parts to a borrower.

        Args:
            tipo_usuario: "Estudiante" or "Externo".
            usuario_identificador: The borrower's external id (RU or CI).
            usuario_nombre: The borrower's display name.
            fecha_estimada_entrega: Due date, today or later.
            user_id_salida: Staff user issuing the loan.
            detalles: Mappings with exactly one of ``item_id``/``pieza_id``
                and a ``cantidad``.

        Returns:
            The persisted Prestamo with all of its lines.

        Raises:
            ValidationError: Malformed borrower, due date or lines.
            StaleSessionError: The issuing staff user no longer exists.
            NotFoundError: A line references an unknown item or part.
            AssetNotLendableError: A target is damaged, lost or retired.
            StockUnavailableError: Not enough units available.
            DatabaseInsertError: The insert failed and was rolled back.
        """
        db = db_session or default_session
        tipo_usuario = catalog.coerce_enum(TipoUsuario, tipo_usuario, "borrower type")
        if blank(usuario_identificador) or blank(usuario_nombre):
            raise ValidationError("Borrower identifier and name are required")
        due = cls._due_date(fecha_estimada_entrega)
        lines = cls._loan_lines(detalles)

        if not User.exists(user_id_salida, db):
            raise StaleSessionError(STALE_SESSION)

        requested = defaultdict(int)
        for tipo, target_id, cantidad in lines:
            requested[(tipo, target_id)] += cantidad

        try:
            # Lock in a stable order so concurrent loans cannot deadlock
            for tipo, target_id in sorted(requested, key=lambda k: (k[0].value, k[1])):
                target = catalog.lock_target(tipo, target_id, db_session=db)
                if not target.is_lendable:
                    raise AssetNotLendableError(
                        f"{tipo.value} {target_id} cannot be lent: {target.estado.value}")
                available = cls.availability(tipo, target_id, db_session=db)
                if requested[(tipo, target_id)] > available:
                    raise StockUnavailableError(
                        f"{tipo.value} {target_id}: requested "
                        f"{requested[(tipo, target_id)]}, available {available}")

            prestamo = Prestamo(
                tipo_usuario=tipo_usuario,
                usuario_identificador=usuario_identificador.strip(),
                usuario_nombre=usuario_nombre.strip(),
                fecha_salida=utcnow(),
                fecha_estimada_entrega=due,
                estado=EstadoPrestamo.VIGENTE,
                user_id_salida=user_id_salida,
            )
            for tipo, target_id, cantidad in lines:
                prestamo.detalles.append(DetallePrestamo(
                    item_id=target_id if tipo == TipoObjetivo.ITEM else None,
                    pieza_id=target_id if tipo == TipoObjetivo.PIEZA else None,
                    cantidad=cantidad,
                ))
            db.add(prestamo)
            db.commit()
        except InventarioAPIError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to create loan")
            raise DatabaseInsertError(f"Failed to create loan record: {str(e)}.")

        logger.info(
            f"Loan {prestamo.id} issued by {user_id_salida} to "
            f"{tipo_usuario.value} {prestamo.usuario_identificador} "
            f"with {len(lines)} line(s)")
        return prestamo

    @classmethod
    def list_loans(cls, offset=None, limit=None, db_session=None) -> List[Prestamo]:
        db = db_session or default_session
        return db.execute(
            cls._loan_query()
            .order_by(Prestamo.fecha_salida.desc(), Prestamo.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()

    @classmethod
    def get_loan(cls, prestamo_id, db_session=None) -> Prestamo:
        db = db_session or default_session
        prestamo = db.execute(
            cls._loan_query().where(Prestamo.id == prestamo_id)
        ).scalar_one_or_none()
        if prestamo is None:
            raise PrestamoNotFoundError(f"Loan {prestamo_id} not found")
        return prestamo

    @classmethod
    def process_return(cls, prestamo_id, user_id_entrega: str, decisiones: Iterable[Mapping],
                       db_session=None) -> Prestamo:
        """
        Check in some or all outstanding lines of a loan.

        Every decision is applied or none is. When the last outstanding
        line comes back the loan is closed. Lines returned in a degraded
        condition are published in a ReturnRegistered event after commit.

        Raises:
            ValidationError: Malformed or duplicated decisions.
            StaleSessionError: The receiving staff user no longer exists.
            PrestamoNotFoundError: Unknown loan.
            DetalleNotFoundError: A line is not part of the loan or was
                already returned.
            DatabaseInsertError: The update failed and was rolled back.
        """
        db = db_session or default_session
        decisions = cls._return_decisions(decisiones)
        if not User.exists(user_id_entrega, db):
            raise StaleSessionError(STALE_SESSION)

        # Reload under the lock; the session may hold copies read before another return
        prestamo = db.get(Prestamo, prestamo_id, with_for_update=True, populate_existing=True)
        if prestamo is None:
            raise PrestamoNotFoundError(f"Loan {prestamo_id} not found")

        detalles = {d.id: d for d in db.execute(
            select(DetallePrestamo)
            .where(DetallePrestamo.prestamo_id == prestamo.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()}
        for detalle_id, _, _ in decisions:
            detalle = detalles.get(detalle_id)
            if detalle is None or detalle.devuelto:
                db.rollback()
                raise DetalleNotFoundError(
                    f"Loan {prestamo_id} has no outstanding line {detalle_id}")

        now = utcnow()
        degraded = []
        try:
            for detalle_id, estado, observacion in decisions:
                detalle = detalles[detalle_id]
                detalle.devuelto = True
                detalle.fecha_devolucion = now
                detalle.estado_devolucion = estado
                detalle.observacion_devolucion = observacion
                if estado.is_degraded:
                    degraded.append(cls._degraded_line(detalle, user_id_entrega))
            db.flush()

            pending = db.execute(
                select(func.count())
                .select_from(DetallePrestamo)
                .where(
                    DetallePrestamo.prestamo_id == prestamo.id,
                    DetallePrestamo.devuelto == False,
                )
            ).scalar()
            closed = pending == 0 and prestamo.estado == EstadoPrestamo.VIGENTE
            if closed:
                prestamo.estado = EstadoPrestamo.DEVUELTO
                prestamo.fecha_real_entrega = now
                prestamo.user_id_entrega = user_id_entrega
            db.commit()
        except InventarioAPIError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to process return for loan {prestamo_id}")
            raise DatabaseInsertError(f"Failed to process return: {str(e)}.")

        logger.info(
            f"Loan {prestamo.id}: {len(decisions)} line(s) returned to {user_id_entrega}, "
            f"{pending} outstanding" + (", loan closed" if closed else ""))

        events.emit(
            events.ReturnRegistered(
                prestamo_id=prestamo.id,
                user_id=user_id_entrega,
                closed=closed,
                degraded_lines=tuple(degraded),
            ),
            db_session=db,
        )
        for line in degraded:
            events.emit(line, db_session=db)
        return cls.get_loan(prestamo.id, db_session=db)

    @classmethod
    def _loan_query(cls):
        return select(Prestamo).options(
            selectinload(Prestamo.detalles).selectinload(DetallePrestamo.item),
            selectinload(Prestamo.detalles).selectinload(DetallePrestamo.pieza),
            selectinload(Prestamo.usuario_salida),
            selectinload(Prestamo.usuario_entrega),
        )

    @classmethod
    def _due_date(cls, value) -> datetime.datetime:
        try:
            due_day = as_date(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid due date {value!r}")
        if due_day < utcnow().date():
            raise ValidationError(f"Due date {due_day.isoformat()} is in the past")
        if isinstance(value, datetime.datetime):
            return value
        return datetime.datetime.combine(
            due_day, datetime.time.min, tzinfo=datetime.timezone.utc)

    @classmethod
    def _loan_lines(cls, detalles):
        """Validates line requests into ``(tipo, target_id, cantidad)`` tuples."""
        if isinstance(detalles, (str, bytes, Mapping)) or detalles is None:
            raise ValidationError("Loan lines must be a list")
        lines = []
        for d in detalles:
            if not isinstance(d, Mapping):
                raise ValidationError("Each loan line must be an object")
            item_id, pieza_id = d.get("item_id"), d.get("pieza_id")
            if (item_id is None) == (pieza_id is None):
                raise ValidationError("Each loan line needs exactly one of item_id or pieza_id")
            cantidad = positive_int(d.get("cantidad", 1), "Loan line quantity")
            if item_id is not None:
                if cantidad != 1:
                    raise ValidationError("An item can only be lent one unit at a time")
                lines.append((TipoObjetivo.ITEM, positive_int(item_id, "item_id"), cantidad))
            else:
                lines.append((TipoObjetivo.PIEZA, positive_int(pieza_id, "pieza_id"), cantidad))
        if not lines:
            raise ValidationError("A loan needs at least one line")
        return lines

    @classmethod
    def _return_decisions(cls, decisiones):
        """Validates return decisions into ``(detalle_id, estado, observacion)`` tuples."""
        if isinstance(decisiones, (str, bytes, Mapping)) or decisiones is None:
            raise ValidationError("Return decisions must be a list")
        decisions, seen = [], set()
        for d in decisiones:
            if not isinstance(d, Mapping):
                raise ValidationError("Each return decision must be an object")
            detalle_id = positive_int(d.get("detalle_id"), "detalle_id")
            if detalle_id in seen:
                raise ValidationError(f"Line {detalle_id} appears more than once")
            seen.add(detalle_id)
            if d.get("estado_devolucion") is None:
                raise ValidationError(f"Line {detalle_id} needs a return condition")
            estado = catalog.coerce_enum(
                EstadoDevolucion, d.get("estado_devolucion"), "return condition")
            observacion = d.get("observacion_devolucion")
            observacion = None if blank(observacion) else str(observacion).strip()
            decisions.append((detalle_id, estado, observacion))
        if not decisions:
            raise ValidationError("At least one line must be returned")
        return decisions

    @classmethod
    def _degraded_line(cls, detalle: DetallePrestamo, user_id: str) -> events.DegradedLine:
        if detalle.item_id is not None:
            item_id = detalle.item_id
        else:
            item_id = detalle.pieza.item_id
        return events.DegradedLine(
            prestamo_id=detalle.prestamo_id,
            user_id=user_id,
            detalle_id=detalle.id,
            tipo_objetivo=detalle.tipo_objetivo,
            item_id=item_id,
            pieza_id=detalle.pieza_id,
            cantidad=detalle.cantidad,
            estado_devolucion=detalle.estado_devolucion,
            observacion=detalle.observacion_devolucion,
        )
