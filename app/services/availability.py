# app/services/availability.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from . import directory
from .shift_catalog import capacity_for

logger = logging.getLogger(__name__)


@dataclass
class SlotLoad:
    """Carga de un turno ACTIVE: cupo configurado vs. citas activas."""
    assignment_id: int
    doctor_id: int
    shift_id: int
    work_date: date
    capacity: int
    booked: int

    @property
    def remaining(self) -> int:
        return self.capacity - self.booked


def _active_counts(db: Session, day: date, shift_id: Optional[int] = None) -> Dict[Tuple[int, int], int]:
    """Citas PENDING/CONFIRMED por (doctor_id, shift_id) en ese día."""
    q = (
        db.query(models.Appointment.doctor_id, models.Appointment.shift_id, func.count(models.Appointment.id))
        .filter(models.Appointment.date == day)
        .filter(models.Appointment.status.in_(models.ACTIVE_APPOINTMENT_STATUSES))
    )
    if shift_id is not None:
        q = q.filter(models.Appointment.shift_id == shift_id)
    rows = q.group_by(models.Appointment.doctor_id, models.Appointment.shift_id).all()
    return {(doctor_id, sid): int(n) for doctor_id, sid, n in rows}


def slot_loads(db: Session, day: date, specialty_id: Optional[int] = None, shift_id: Optional[int] = None,
               exclude_doctor_id: Optional[int] = None) -> List[SlotLoad]:
    """
    Todos los turnos ACTIVE del día (incluidos los llenos), ordenados por
    (shift_id, doctor_id) para que cualquier selección sea determinista.
    """
    q = (
        db.query(models.DoctorShift)
        .join(models.Doctor, models.Doctor.id == models.DoctorShift.doctor_id)
        .filter(models.DoctorShift.work_date == day)
        .filter(models.DoctorShift.status == models.DoctorShiftStatus.ACTIVE)
    )
    if specialty_id is not None:
        q = q.filter(models.Doctor.specialty_id == specialty_id)
    if shift_id is not None:
        q = q.filter(models.DoctorShift.shift_id == shift_id)
    if exclude_doctor_id is not None:
        q = q.filter(models.DoctorShift.doctor_id != exclude_doctor_id)
    assignments = q.order_by(models.DoctorShift.shift_id.asc(), models.DoctorShift.doctor_id.asc()).all()

    counts = _active_counts(db, day, shift_id=shift_id)
    return [
        SlotLoad(
            assignment_id=ds.id,
            doctor_id=ds.doctor_id,
            shift_id=ds.shift_id,
            work_date=ds.work_date,
            capacity=capacity_for(ds.shift_id),
            booked=counts.get((ds.doctor_id, ds.shift_id), 0),
        )
        for ds in assignments
    ]


def resolve(db: Session, specialty_id: int, day: date) -> List[SlotLoad]:
    """
    Médicos de la especialidad con turno ACTIVE ese día y cupo libre.
    Lista vacía es un resultado normal; solo falla si la especialidad no existe.
    """
    directory.get_specialty(db, specialty_id)
    loads = [s for s in slot_loads(db, day, specialty_id=specialty_id) if s.remaining > 0]
    logger.debug("availability specialty=%s date=%s -> %s turnos libres", specialty_id, day, len(loads))
    return loads


def replacement_candidates(db: Session, specialty_id: int, shift_id: int, day: date,
                           exclude_doctor_id: int, needed: int = 1) -> List[SlotLoad]:
    """
    Médicos de la misma especialidad, mismo turno y fecha, distintos del que se
    cancela, con al menos `needed` cupos. El primero de la lista es el elegido.
    """
    return [
        s for s in slot_loads(db, day, specialty_id=specialty_id, shift_id=shift_id, exclude_doctor_id=exclude_doctor_id)
        if s.remaining >= needed
    ]
