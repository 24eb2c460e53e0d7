#!/usr/bin/env python
"""
    Loan Schemas for Inventario,
    including loan creation, return requests and loan responses.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from inventario.core.models import (
    EstadoActivo,
    EstadoDevolucion,
    EstadoPrestamo,
    TipoUsuario,
)

class DetallePrestamoCreate(BaseModel):
    item_id: Optional[int] = None
    pieza_id: Optional[int] = None
    cantidad: int = 1

class PrestamoCreate(BaseModel):
    # Enum and date fields are checked by the ledger so bad values answer 400
    tipo_usuario: str
    usuario_identificador: str
    usuario_nombre: str
    fecha_estimada_entrega: str
    detalles: List[DetallePrestamoCreate] = []

    class Config:
        json_schema_extra = {
            "example": {
                "tipo_usuario": "Estudiante",
                "usuario_identificador": "RU-123456",
                "usuario_nombre": "Ana Quispe",
                "fecha_estimada_entrega": "2025-06-30",
                "detalles": [
                    {"item_id": 1, "cantidad": 1},
                    {"pieza_id": 4, "cantidad": 2}
                ]
            }
        }

class DetalleDevolucion(BaseModel):
    detalle_id: int
    estado_devolucion: Optional[str] = None
    observacion_devolucion: Optional[str] = None

class DevolucionRequest(BaseModel):
    detalles_devueltos: List[DetalleDevolucion] = []

class ItemSnapshot(BaseModel):
    id: int
    codigo: str
    descripcion: str
    estado: EstadoActivo

    class Config:
        from_attributes = True

class PiezaSnapshot(BaseModel):
    id: int
    nombre: str
    estado: EstadoActivo
    item_id: int

    class Config:
        from_attributes = True

class UsuarioSnapshot(BaseModel):
    id: str
    email: str
    name: Optional[str] = None

    class Config:
        from_attributes = True

class DetallePrestamo(BaseModel):
    id: int
    item_id: Optional[int] = None
    pieza_id: Optional[int] = None
    cantidad: int
    devuelto: bool
    fecha_devolucion: Optional[datetime] = None
    estado_devolucion: Optional[EstadoDevolucion] = None
    observacion_devolucion: Optional[str] = None
    item: Optional[ItemSnapshot] = None
    pieza: Optional[PiezaSnapshot] = None

    class Config:
        from_attributes = True

class Prestamo(BaseModel):
    id: int
    tipo_usuario: TipoUsuario
    usuario_identificador: str
    usuario_nombre: str
    fecha_salida: datetime
    fecha_estimada_entrega: datetime
    fecha_real_entrega: Optional[datetime] = None
    estado: EstadoPrestamo
    user_id_salida: str
    user_id_entrega: Optional[str] = None
    usuario_salida: Optional[UsuarioSnapshot] = None
    usuario_entrega: Optional[UsuarioSnapshot] = None
    detalles: List[DetallePrestamo] = []

    class Config:
        from_attributes = True
