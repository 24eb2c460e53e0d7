from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from inventario.core.models import EstadoActivo, TipoNovedad

class DetalleNovedadCreate(BaseModel):
    pieza_id: int
    cantidad: Optional[int] = None
    nuevo_estado: Optional[str] = None
    descripcion: Optional[str] = None

class NovedadCreate(BaseModel):
    tipo: str
    descripcion: str
    item_id: int
    item_nuevo_estado: Optional[str] = None
    detalles: List[DetalleNovedadCreate] = []

class DetalleNovedad(BaseModel):
    id: int
    pieza_id: int
    cantidad: Optional[int] = None
    nuevo_estado: Optional[EstadoActivo] = None
    descripcion: Optional[str] = None

    class Config:
        from_attributes = True

class Novedad(BaseModel):
    id: int
    tipo: TipoNovedad
    descripcion: str
    fecha: datetime
    item_id: int
    user_id: str
    item_nuevo_estado: Optional[EstadoActivo] = None
    detalles: List[DetalleNovedad] = []

    class Config:
        from_attributes = True
