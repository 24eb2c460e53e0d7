#!/usr/bin/env python

"""
    API routes for Inventario,
    including loans, returns, availability and incident reports.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from typing import List, Optional
from fastapi import (
    APIRouter,
    Depends,
    Request,
    HTTPException,
    status,
    Cookie
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from inventario import __version__ as VERSION
from inventario.core import auth, novedades
from inventario.core.db import get_db
from inventario.core.prestamos import LoanLedger
from inventario.core.exceptions import InventarioAPIError, InternalError
from inventario.schemas import disponibilidad, novedad, prestamo

logger = logging.getLogger(__name__)

router = APIRouter()

def current_user_id(request: Request, session: Optional[str] = Cookie(None)) -> str:
    """Resolves the signed-in staff user from the session cookie or Bearer token."""
    token = auth.extract_session(session, request.headers.get("Authorization"))
    if user_id := auth.verify_session_cookie(token):
        return user_id
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

def _http_error(e: InventarioAPIError) -> HTTPException:
    if isinstance(e, InternalError):
        logger.error(f"{type(e).__name__}: {e}")
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error, the operation was not completed")
    return HTTPException(status_code=e.status_code, detail=str(e))

def _read_failed(what: str) -> HTTPException:
    logger.exception(f"Failed to read {what}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to read {what}")

@router.get("/health", status_code=status.HTTP_200_OK)
def health():
    return {"status": "ok", "version": VERSION}

@router.post("/prestamos", status_code=status.HTTP_201_CREATED,
             response_model=prestamo.Prestamo)
def create_prestamo(body: prestamo.PrestamoCreate,
                    user_id: str = Depends(current_user_id),
                    db: Session = Depends(get_db)):
    try:
        return LoanLedger.create_loan(
            tipo_usuario=body.tipo_usuario,
            usuario_identificador=body.usuario_identificador,
            usuario_nombre=body.usuario_nombre,
            fecha_estimada_entrega=body.fecha_estimada_entrega,
            user_id_salida=user_id,
            detalles=[d.model_dump() for d in body.detalles],
            db_session=db,
        )
    except InventarioAPIError as e:
        raise _http_error(e)

@router.get("/prestamos", response_model=List[prestamo.Prestamo])
def list_prestamos(offset: Optional[int] = None, limit: Optional[int] = None,
                   db: Session = Depends(get_db)):
    try:
        return LoanLedger.list_loans(offset=offset, limit=limit, db_session=db)
    except SQLAlchemyError:
        raise _read_failed("loans")

@router.get("/prestamos/{prestamo_id}", response_model=prestamo.Prestamo)
def get_prestamo(prestamo_id: int, db: Session = Depends(get_db)):
    try:
        return LoanLedger.get_loan(prestamo_id, db_session=db)
    except InventarioAPIError as e:
        raise _http_error(e)

@router.post("/prestamos/{prestamo_id}/devolucion", response_model=prestamo.Prestamo)
def return_prestamo(prestamo_id: int, body: prestamo.DevolucionRequest,
                    user_id: str = Depends(current_user_id),
                    db: Session = Depends(get_db)):
    """
    Check in some or all outstanding lines of a loan.

    Lines returned damaged, lost or needing maintenance are reported as
    incidents after the return is saved; a failing report does not undo
    the return.
    """
    try:
        return LoanLedger.process_return(
            prestamo_id,
            user_id,
            [d.model_dump() for d in body.detalles_devueltos],
            db_session=db,
        )
    except InventarioAPIError as e:
        raise _http_error(e)

@router.get("/disponibilidad/{tipo}/{target_id}", response_model=disponibilidad.Disponibilidad)
def get_disponibilidad(tipo: str, target_id: int, reservado: int = 0,
                       db: Session = Depends(get_db)):
    tipo = tipo.strip().capitalize()
    try:
        disponible = LoanLedger.availability(tipo, target_id, reservado=reservado, db_session=db)
    except InventarioAPIError as e:
        raise _http_error(e)
    return {"tipo": tipo, "id": target_id, "reservado": reservado, "disponible": disponible}

@router.get("/items/{item_id}/disponibilidad", response_model=disponibilidad.ItemDisponibilidad)
def get_item_disponibilidad(item_id: int, db: Session = Depends(get_db)):
    try:
        return LoanLedger.item_availability(item_id, db_session=db)
    except InventarioAPIError as e:
        raise _http_error(e)

@router.post("/novedades", status_code=status.HTTP_201_CREATED, response_model=novedad.Novedad)
def create_novedad(body: novedad.NovedadCreate,
                   user_id: str = Depends(current_user_id),
                   db: Session = Depends(get_db)):
    try:
        return novedades.record_incident(
            tipo=body.tipo,
            descripcion=body.descripcion,
            item_id=body.item_id,
            user_id=user_id,
            item_nuevo_estado=body.item_nuevo_estado,
            detalles=[d.model_dump() for d in body.detalles],
            db_session=db,
        )
    except InventarioAPIError as e:
        raise _http_error(e)

@router.get("/novedades", response_model=List[novedad.Novedad])
def list_novedades(item_id: Optional[int] = None, db: Session = Depends(get_db)):
    try:
        return novedades.list_incidents(item_id=item_id, db_session=db)
    except SQLAlchemyError:
        raise _read_failed("incidents")
