from pydantic import BaseModel
from typing import List

class Disponibilidad(BaseModel):
    tipo: str
    id: int
    reservado: int = 0
    disponible: int

class PiezaDisponibilidad(BaseModel):
    pieza_id: int
    nombre: str
    estado: str
    cantidad: int
    disponible: int

class ItemDisponibilidad(BaseModel):
    item_id: int
    codigo: str
    estado: str
    disponible: int
    piezas: List[PiezaDisponibilidad] = []
