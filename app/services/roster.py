# app/services/roster.py
"""
Generación mensual de turnos (doctor_shifts) a partir de las reglas semanales
(roster_patterns). Nunca duplica: si la tupla ya tiene una asignación ACTIVE
se salta.
"""
from __future__ import annotations
import calendar
import logging
from datetime import date, timedelta
from typing import List, Optional, Set, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import InvalidRequest, InvalidState, NotFound
from . import directory, shift_catalog
from .clock import local_today

logger = logging.getLogger(__name__)


def next_month(today: Optional[date] = None) -> Tuple[int, int]:
    d = (today or local_today()) + relativedelta(months=1)
    return d.year, d.month


def _period(year: int, month: int) -> schemas.GenerationPeriod:
    if not 1 <= month <= 12:
        raise InvalidRequest("month debe estar entre 1 y 12")
    last = calendar.monthrange(year, month)[1]
    return schemas.GenerationPeriod(year=year, month=month, start_date=date(year, month, 1), end_date=date(year, month, last))


# ──────────────────────────────────────────────────────────────────────────────
# Reglas semanales
# ──────────────────────────────────────────────────────────────────────────────
def list_patterns(db: Session, doctor_id: Optional[int] = None, is_active: Optional[bool] = None) -> List[models.RosterPattern]:
    q = db.query(models.RosterPattern)
    if doctor_id is not None:
        q = q.filter(models.RosterPattern.doctor_id == doctor_id)
    if is_active is not None:
        q = q.filter(models.RosterPattern.is_active == is_active)
    return q.order_by(models.RosterPattern.day_of_week.asc(), models.RosterPattern.shift_id.asc(),
                      models.RosterPattern.doctor_id.asc()).all()


def create_pattern(db: Session, doctor_id: int, shift_id: int, day_of_week: int, notes: Optional[str] = None) -> models.RosterPattern:
    directory.get_doctor(db, doctor_id)
    shift_catalog.get_shift(db, shift_id)
    pattern = models.RosterPattern(doctor_id=doctor_id, shift_id=shift_id, day_of_week=day_of_week, notes=notes)
    db.add(pattern)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("Ya existe esa regla semanal para el médico")
    db.refresh(pattern)
    return pattern


def set_pattern_active(db: Session, pattern_id: int, is_active: bool) -> models.RosterPattern:
    pattern = db.get(models.RosterPattern, pattern_id)
    if pattern is None:
        raise NotFound(f"Regla semanal {pattern_id} no encontrada")
    pattern.is_active = is_active
    db.commit()
    db.refresh(pattern)
    return pattern


# ──────────────────────────────────────────────────────────────────────────────
# Generación
# ──────────────────────────────────────────────────────────────────────────────
def _existing_active(db: Session, start: date, end: date) -> Set[Tuple[date, int, int]]:
    rows = (
        db.query(models.DoctorShift.work_date, models.DoctorShift.doctor_id, models.DoctorShift.shift_id)
        .filter(models.DoctorShift.work_date >= start)
        .filter(models.DoctorShift.work_date <= end)
        .filter(models.DoctorShift.status == models.DoctorShiftStatus.ACTIVE)
        .all()
    )
    return {(d, doctor_id, shift_id) for d, doctor_id, shift_id in rows}


def preview_month(db: Session, year: int, month: int) -> schemas.GenerationPreview:
    period = _period(year, month)
    patterns = list_patterns(db, is_active=True)
    existing = _existing_active(db, period.start_date, period.end_date)

    planned: List[schemas.PlannedShift] = []
    day = period.start_date
    while day <= period.end_date:
        dow = day.isoweekday()
        for p in patterns:
            if p.day_of_week == dow:
                planned.append(schemas.PlannedShift(
                    date=day, doctor_id=p.doctor_id, shift_id=p.shift_id,
                    exists=(day, p.doctor_id, p.shift_id) in existing,
                ))
        day += timedelta(days=1)

    new = sum(1 for s in planned if not s.exists)
    return schemas.GenerationPreview(
        period=period,
        total_patterns=len(patterns),
        total_shifts=len(planned),
        new_shifts=new,
        existing_shifts=len(planned) - new,
        shifts=planned,
    )


def generate_month(db: Session, year: int, month: int) -> schemas.GenerationResult:
    plan = preview_month(db, year, month)
    todo = [s for s in plan.shifts if not s.exists]
    for s in todo:
        db.add(models.DoctorShift(doctor_id=s.doctor_id, shift_id=s.shift_id, work_date=s.date,
                                  status=models.DoctorShiftStatus.ACTIVE))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("Otro proceso generó turnos de este mes al mismo tiempo; reintente")

    logger.info("roster %04d-%02d: %s turnos generados, %s existentes", year, month, len(todo), plan.existing_shifts)
    return schemas.GenerationResult(
        message=f"Roster {year:04d}-{month:02d} generado",
        generated=len(todo),
        skipped=plan.existing_shifts,
        period=plan.period,
    )
