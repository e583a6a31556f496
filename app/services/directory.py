# app/services/directory.py
"""
Directorio de especialidades y médicos. Para el agendamiento es un
colaborador externo: solo se consulta, nunca se escribe desde aquí.
"""
from __future__ import annotations
from typing import List

from sqlalchemy.orm import Session

from ..errors import NotFound
from .. import models


def get_specialty(db: Session, specialty_id: int) -> models.Specialty:
    specialty = db.get(models.Specialty, specialty_id)
    if specialty is None:
        raise NotFound(f"Especialidad {specialty_id} no encontrada")
    return specialty


def list_specialties(db: Session) -> List[models.Specialty]:
    return db.query(models.Specialty).order_by(models.Specialty.name.asc()).all()


def get_doctor(db: Session, doctor_id: int) -> models.Doctor:
    doctor = db.get(models.Doctor, doctor_id)
    if doctor is None:
        raise NotFound(f"Médico {doctor_id} no encontrado")
    return doctor


def doctors_by_specialty(db: Session, specialty_id: int) -> List[models.Doctor]:
    get_specialty(db, specialty_id)
    return (
        db.query(models.Doctor)
        .filter(models.Doctor.specialty_id == specialty_id)
        .order_by(models.Doctor.id.asc())
        .all()
    )
