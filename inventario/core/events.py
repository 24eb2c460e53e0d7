#!/usr/bin/env python

"""
    In-process events for Inventario.

    Handlers run synchronously after the emitting transaction committed.
    A failing handler is logged and skipped; it never reaches the emitter.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
from inventario.core.models import EstadoDevolucion, TipoObjetivo

logger = logging.getLogger(__name__)

_handlers = defaultdict(list)


@dataclass(frozen=True)
class DegradedLine:
    """One loan line that came back damaged, lost or needing maintenance.

    Emitted once per line so each report succeeds or fails on its own.
    """
    prestamo_id: int
    user_id: str
    detalle_id: int
    tipo_objetivo: TipoObjetivo
    item_id: int
    pieza_id: Optional[int]
    cantidad: int
    estado_devolucion: EstadoDevolucion
    observacion: Optional[str] = None


@dataclass(frozen=True)
class ReturnRegistered:
    prestamo_id: int
    user_id: str
    closed: bool
    degraded_lines: Tuple[DegradedLine, ...] = ()


def subscribe(event_type, handler: Callable):
    if handler not in _handlers[event_type]:
        _handlers[event_type].append(handler)
    return handler

def unsubscribe(event_type, handler: Callable):
    if handler in _handlers[event_type]:
        _handlers[event_type].remove(handler)

def handlers_for(event_type):
    return list(_handlers[event_type])

def emit(event, **context):
    """Delivers ``event`` to every subscribed handler.

    Returns the list of ``(handler, exception)`` pairs that failed.
    """
    failures = []
    for handler in handlers_for(type(event)):
        try:
            handler(event, **context)
        except Exception as e:
            logger.exception(
                f"Handler {getattr(handler, '__name__', handler)!s} failed for "
                f"{type(event).__name__}: {e}")
            failures.append((handler, e))
    return failures
