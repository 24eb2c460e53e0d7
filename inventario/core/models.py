#!/usr/bin/env python

"""
    Models for Inventario,
    including the asset catalog, incident reports and the loan ledger tables.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
import uuid
from sqlalchemy import (
    Column, String, Boolean, Integer, DateTime, ForeignKey, CheckConstraint,
    Enum as SQLAlchemyEnum, event, select
)
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from inventario.core.db import Base
from inventario.core.exceptions import ImmutableRecordError
from inventario.core.utils import utcnow


class TipoUsuario(enum.Enum):
    ESTUDIANTE = "Estudiante"
    EXTERNO = "Externo"

class EstadoPrestamo(enum.Enum):
    VIGENTE = "Vigente"
    DEVUELTO = "Devuelto"

class EstadoActivo(enum.Enum):
    DISPONIBLE = "Disponible"
    EN_USO = "En Uso"
    REPARACION = "Reparación"
    BAJA = "Baja"
    DANADO = "Dañado"
    PERDIDO = "Perdido"
    MANTENIMIENTO = "Mantenimiento"
    MALO = "Malo"

    @property
    def is_lendable(self):
        return self not in NON_LENDABLE_STATES

NON_LENDABLE_STATES = frozenset({
    EstadoActivo.MALO,
    EstadoActivo.DANADO,
    EstadoActivo.MANTENIMIENTO,
    EstadoActivo.PERDIDO,
    EstadoActivo.BAJA,
})

class EstadoDevolucion(enum.Enum):
    DISPONIBLE = "Disponible"
    OK = "OK"
    DANADO = "Dañado"
    PERDIDO = "Perdido"
    MANTENIMIENTO = "Mantenimiento"

    @property
    def is_degraded(self):
        """True when the asset came back in a condition worth reporting."""
        return self not in (EstadoDevolucion.DISPONIBLE, EstadoDevolucion.OK)

class TipoNovedad(enum.Enum):
    DANADO = "Dañado"
    PERDIDO = "Perdido"
    MANTENIMIENTO = "Mantenimiento"
    FALLA = "Falla"
    DESGASTE = "Desgaste"
    NOTA = "Nota"

class TipoObjetivo(enum.Enum):
    ITEM = "Item"
    PIEZA = "Pieza"


def _enum(enum_cls):
    # Persist the human readable value ("En Uso"), not the member name
    return SQLAlchemyEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=50,
    )

def _new_user_id():
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = 'users'

    id = Column(String(50), primary_key=True, default=_new_user_id)
    email = Column(String, unique=True, nullable=False)
    name = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    @classmethod
    def exists(cls, user_id, db_session):
        if not user_id:
            return False
        return db_session.get(cls, user_id) is not None


class Categoria(Base):
    __tablename__ = 'categorias'

    id = Column(Integer, primary_key=True)
    nombre = Column(String, nullable=False)
    prefijo = Column(String(10), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    plantillas = relationship('PlantillaItem', back_populates='categoria')


class PlantillaItem(Base):
    __tablename__ = 'plantillas_item'

    id = Column(Integer, primary_key=True)
    nombre = Column(String, nullable=False)
    fabricante = Column(String)
    modelo = Column(String)
    prefijo = Column(String(10), nullable=False)
    categoria_id = Column(Integer, ForeignKey('categorias.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    categoria = relationship('Categoria', back_populates='plantillas')
    items = relationship('Item', back_populates='plantilla')


class Item(Base):
    __tablename__ = 'items'

    id = Column(Integer, primary_key=True)
    codigo = Column(String(50), unique=True, nullable=False)
    descripcion = Column(String, nullable=False)
    observacion = Column(String)
    ubicacion = Column(String)
    estado = Column(_enum(EstadoActivo), default=EstadoActivo.DISPONIBLE, nullable=False)
    plantilla_id = Column(Integer, ForeignKey('plantillas_item.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    plantilla = relationship('PlantillaItem', back_populates='items')
    piezas = relationship('Pieza', back_populates='item', cascade='all, delete-orphan')
    novedades = relationship('Novedad', back_populates='item')

    @hybrid_property
    def stock_total(self):
        """Items are not fungible, there is always exactly one."""
        return 1

    @property
    def is_lendable(self):
        return self.estado.is_lendable


class Pieza(Base):
    __tablename__ = 'piezas'
    __table_args__ = (
        CheckConstraint('cantidad >= 0', name='ck_piezas_cantidad_non_negative'),
    )

    id = Column(Integer, primary_key=True)
    nombre = Column(String, nullable=False)
    cantidad = Column(Integer, default=1, nullable=False)
    observacion = Column(String)
    estado = Column(_enum(EstadoActivo), default=EstadoActivo.DISPONIBLE, nullable=False)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    item = relationship('Item', back_populates='piezas')

    @hybrid_property
    def stock_total(self):
        return self.cantidad

    @property
    def is_lendable(self):
        return self.estado.is_lendable


class Novedad(Base):
    __tablename__ = 'novedades'

    id = Column(Integer, primary_key=True)
    tipo = Column(_enum(TipoNovedad), nullable=False)
    descripcion = Column(String, nullable=False)
    fecha = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=False)
    user_id = Column(String(50), ForeignKey('users.id'), nullable=False)
    item_nuevo_estado = Column(_enum(EstadoActivo))

    item = relationship('Item', back_populates='novedades')
    usuario = relationship('User')
    detalles = relationship(
        'DetalleNovedadPieza', back_populates='novedad', cascade='all, delete-orphan')


class DetalleNovedadPieza(Base):
    __tablename__ = 'detalles_novedad_pieza'

    id = Column(Integer, primary_key=True)
    novedad_id = Column(Integer, ForeignKey('novedades.id', ondelete='CASCADE'), nullable=False)
    pieza_id = Column(Integer, ForeignKey('piezas.id'), nullable=False)
    cantidad = Column(Integer)
    nuevo_estado = Column(_enum(EstadoActivo))
    descripcion = Column(String)

    novedad = relationship('Novedad', back_populates='detalles')
    pieza = relationship('Pieza')


class Prestamo(Base):
    __tablename__ = 'prestamos'

    id = Column(Integer, primary_key=True)
    tipo_usuario = Column(_enum(TipoUsuario), nullable=False)
    usuario_identificador = Column(String(50), nullable=False)
    usuario_nombre = Column(String, nullable=False)
    fecha_salida = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    fecha_estimada_entrega = Column(DateTime(timezone=True), nullable=False)
    fecha_real_entrega = Column(DateTime(timezone=True), nullable=True)
    estado = Column(_enum(EstadoPrestamo), default=EstadoPrestamo.VIGENTE, nullable=False)
    user_id_salida = Column(String(50), ForeignKey('users.id'), nullable=False)
    user_id_entrega = Column(String(50), ForeignKey('users.id'), nullable=True)

    detalles = relationship(
        'DetallePrestamo', back_populates='prestamo', cascade='all, delete-orphan')
    usuario_salida = relationship('User', foreign_keys=[user_id_salida])
    usuario_entrega = relationship('User', foreign_keys=[user_id_entrega])

    @property
    def detalles_pendientes(self):
        return [d for d in self.detalles if not d.devuelto]

    @property
    def is_closed(self):
        return self.estado == EstadoPrestamo.DEVUELTO


class DetallePrestamo(Base):
    __tablename__ = 'detalles_prestamo'
    __table_args__ = (
        CheckConstraint(
            '(item_id IS NULL) <> (pieza_id IS NULL)',
            name='ck_detalles_prestamo_single_target'),
        CheckConstraint('cantidad > 0', name='ck_detalles_prestamo_cantidad_positive'),
    )

    id = Column(Integer, primary_key=True)
    prestamo_id = Column(Integer, ForeignKey('prestamos.id', ondelete='CASCADE'), nullable=False)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=True)
    pieza_id = Column(Integer, ForeignKey('piezas.id'), nullable=True)
    cantidad = Column(Integer, default=1, nullable=False)
    devuelto = Column(Boolean, default=False, nullable=False)
    fecha_devolucion = Column(DateTime(timezone=True), nullable=True)
    estado_devolucion = Column(_enum(EstadoDevolucion), nullable=True)
    observacion_devolucion = Column(String, nullable=True)

    prestamo = relationship('Prestamo', back_populates='detalles')
    item = relationship('Item')
    pieza = relationship('Pieza')

    @property
    def tipo_objetivo(self):
        return TipoObjetivo.ITEM if self.item_id is not None else TipoObjetivo.PIEZA


@event.listens_for(DetallePrestamo, "before_update")
def prevent_returned_line_update(mapper, connection, target):
    """Returned loan lines are frozen.

    Raises ImmutableRecordError when a line whose persisted ``devuelto``
    was already true is flushed with column changes.
    """
    table = DetallePrestamo.__table__
    persisted = connection.execute(
        select(table.c.devuelto).where(table.c.id == target.id)
    ).scalar()
    if persisted:
        raise ImmutableRecordError(
            f"Loan line {target.id} was already returned and cannot be modified")
