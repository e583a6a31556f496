# app/services/slots.py
"""
Contabilidad de cupos por (médico, turno, fecha) sobre la tabla slot_ledger.

Tomar un cupo es un único UPDATE condicional
    booked_count = booked_count + n  WHERE booked_count + n <= capacidad
así que dos transacciones concurrentes nunca pueden pasar ambas el límite:
en Postgres la segunda espera el lock de fila y reevalúa el WHERE; en SQLite
el lock de escritura de la base serializa las dos.

Ninguna función hace commit: corren dentro de la transacción del llamador.
"""
from __future__ import annotations
import logging
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from .shift_catalog import capacity_for

logger = logging.getLogger(__name__)

_TUPLE_COLUMNS = ["doctor_id", "shift_id", "work_date"]


def _tuple_filter(doctor_id: int, shift_id: int, day: date):
    return (
        models.SlotLedger.doctor_id == doctor_id,
        models.SlotLedger.shift_id == shift_id,
        models.SlotLedger.work_date == day,
    )


def _ensure_row(db: Session, doctor_id: int, shift_id: int, day: date) -> None:
    """Crea la fila del contador si no existe (idempotente y seguro ante carreras)."""
    values = {"doctor_id": doctor_id, "shift_id": shift_id, "work_date": day, "booked_count": 0}
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        db.execute(sqlite_insert(models.SlotLedger).values(**values).on_conflict_do_nothing(index_elements=_TUPLE_COLUMNS))
        return
    if dialect == "postgresql":
        db.execute(pg_insert(models.SlotLedger).values(**values).on_conflict_do_nothing(index_elements=_TUPLE_COLUMNS))
        return

    # Otros motores: insert dentro de un savepoint, el duplicado se ignora
    exists = db.execute(select(models.SlotLedger.id).where(*_tuple_filter(doctor_id, shift_id, day))).first()
    if exists:
        return
    try:
        with db.begin_nested():
            db.add(models.SlotLedger(**values))
    except IntegrityError:
        logger.debug("slot_ledger ya creado por otra transacción: %s/%s/%s", doctor_id, shift_id, day)


def take(db: Session, doctor_id: int, shift_id: int, day: date, count: int = 1) -> bool:
    """Reserva `count` cupos. Devuelve False si no caben; no lanza."""
    _ensure_row(db, doctor_id, shift_id, day)
    capacity = capacity_for(shift_id)
    res = db.execute(
        update(models.SlotLedger)
        .where(*_tuple_filter(doctor_id, shift_id, day))
        .where(models.SlotLedger.booked_count + count <= capacity)
        .values(booked_count=models.SlotLedger.booked_count + count)
        .execution_options(synchronize_session=False)
    )
    ok = res.rowcount == 1
    logger.debug("slot take doctor=%s shift=%s date=%s n=%s cap=%s ok=%s",
                 doctor_id, shift_id, day, count, capacity, ok)
    return ok


def lock(db: Session, doctor_id: int, shift_id: int, day: date) -> None:
    """
    Bloquea la fila del contador sin cambiarla. Quien además toque el
    doctor_shift debe hacerlo después, en el mismo orden que una reserva.
    """
    _ensure_row(db, doctor_id, shift_id, day)
    db.execute(
        update(models.SlotLedger)
        .where(*_tuple_filter(doctor_id, shift_id, day))
        .values(booked_count=models.SlotLedger.booked_count)
        .execution_options(synchronize_session=False)
    )


def release(db: Session, doctor_id: int, shift_id: int, day: date, count: int = 1) -> None:
    """Libera `count` cupos (cita cancelada, completada o movida a otro turno)."""
    res = db.execute(
        update(models.SlotLedger)
        .where(*_tuple_filter(doctor_id, shift_id, day))
        .where(models.SlotLedger.booked_count >= count)
        .values(booked_count=models.SlotLedger.booked_count - count)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        logger.warning("slot_ledger desalineado al liberar: doctor=%s shift=%s date=%s n=%s",
                       doctor_id, shift_id, day, count)


def booked(db: Session, doctor_id: int, shift_id: int, day: date) -> int:
    value = db.execute(
        select(models.SlotLedger.booked_count).where(*_tuple_filter(doctor_id, shift_id, day))
    ).scalar()
    return int(value or 0)
