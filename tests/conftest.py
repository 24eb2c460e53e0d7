#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.conftest
    ~~~~~~~~~~~~~~

    Shared fixtures: an in-memory database seeded with a staff user
    and a small catalog of items and parts.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details.
"""

import os
os.environ.setdefault("TESTING", "true")

import datetime
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from inventario.core.db import Base
from inventario.core.models import (
    User,
    Categoria,
    PlantillaItem,
    Item,
    Pieza,
    EstadoActivo,
)
from inventario.core.utils import utcnow

STAFF_ID = "staff-0001"

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture
def db_session(engine):
    SessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def staff(db_session):
    user = User(id=STAFF_ID, email="encargado@lab.example.org", name="Encargado")
    db_session.add(user)
    db_session.commit()
    return user

@pytest.fixture
def plantilla(db_session):
    categoria = Categoria(nombre="Electrónica", prefijo="ELE")
    plantilla = PlantillaItem(
        nombre="Osciloscopio", fabricante="Rigol", modelo="DS1054Z",
        prefijo="OSC", categoria=categoria)
    db_session.add_all([categoria, plantilla])
    db_session.commit()
    return plantilla

@pytest.fixture
def make_item(db_session, plantilla):
    counter = {"n": 0}

    def _make_item(estado=EstadoActivo.DISPONIBLE, descripcion="Osciloscopio digital"):
        counter["n"] += 1
        item = Item(
            codigo=f"OSC-{counter['n']:04d}",
            descripcion=descripcion,
            estado=estado,
            plantilla_id=plantilla.id,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make_item

@pytest.fixture
def make_part(db_session, make_item):
    def _make_part(cantidad=5, estado=EstadoActivo.DISPONIBLE, item=None, nombre="Punta de prueba"):
        item = item or make_item()
        pieza = Pieza(nombre=nombre, cantidad=cantidad, estado=estado, item_id=item.id)
        db_session.add(pieza)
        db_session.commit()
        return pieza
    return _make_part

@pytest.fixture
def due():
    return (utcnow().date() + datetime.timedelta(days=7)).isoformat()

@pytest.fixture
def lend(db_session, staff, due):
    """Issues a loan through the ledger with sensible borrower defaults."""
    from inventario.core.prestamos import LoanLedger

    def _lend(*detalles, tipo_usuario="Estudiante"):
        return LoanLedger.create_loan(
            tipo_usuario=tipo_usuario,
            usuario_identificador="RU-100200",
            usuario_nombre="Ana Quispe",
            fecha_estimada_entrega=due,
            user_id_salida=staff.id,
            detalles=list(detalles),
            db_session=db_session,
        )
    return _lend
