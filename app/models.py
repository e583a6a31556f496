# app/models.py
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    Integer, String, Date, Time, DateTime, Enum, ForeignKey, Boolean, Text,
    UniqueConstraint, CheckConstraint, Index, text,
)
from datetime import datetime, date as date_type, time as time_type
import enum
from .database import Base


class DoctorShiftStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    REPLACED = "REPLACED"


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Estados que ocupan capacidad del turno
ACTIVE_APPOINTMENT_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class Specialty(Base):
    __tablename__ = "specialties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    doctors = relationship("Doctor", back_populates="specialty")


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    specialty_id: Mapped[int] = mapped_column(Integer, ForeignKey("specialties.id"), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    doctor_code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, unique=True)

    specialty = relationship("Specialty", back_populates="doctors")


class Shift(Base):
    """Plantilla de turno: ventana horaria con nombre (ej. Mañana 08:00-12:00)."""
    __tablename__ = "shifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    start_time: Mapped[time_type] = mapped_column(Time, nullable=False)
    end_time: Mapped[time_type] = mapped_column(Time, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)


class DoctorShift(Base):
    __tablename__ = "doctor_shifts"
    __table_args__ = (
        # A lo más una asignación ACTIVE por (médico, turno, fecha)
        Index(
            "uq_doctor_shifts_active",
            "doctor_id", "shift_id", "work_date",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    doctor_id: Mapped[int] = mapped_column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    shift_id: Mapped[int] = mapped_column(Integer, ForeignKey("shifts.id"), nullable=False)
    work_date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[DoctorShiftStatus] = mapped_column(
        Enum(DoctorShiftStatus, name="doctor_shift_status"),
        default=DoctorShiftStatus.ACTIVE,
        nullable=False,
    )
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=None)
    replaced_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("doctor_shifts.id"), nullable=True)
    # Marcas del flujo de cancelación: permiten retomar un reintento tras timeout
    reschedule_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=None)
    reschedule_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    doctor = relationship("Doctor")
    shift = relationship("Shift")


class SlotLedger(Base):
    """
    Contador de citas activas por (médico, turno, fecha). Es la restricción de
    capacidad a nivel de BD: solo se incrementa con un UPDATE condicional.
    """
    __tablename__ = "slot_ledger"
    __table_args__ = (
        UniqueConstraint("doctor_id", "shift_id", "work_date", name="uq_slot_ledger_tuple"),
        CheckConstraint("booked_count >= 0", name="ck_slot_ledger_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    doctor_id: Mapped[int] = mapped_column(Integer, ForeignKey("doctors.id"), nullable=False)
    shift_id: Mapped[int] = mapped_column(Integer, ForeignKey("shifts.id"), nullable=False)
    work_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    booked_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_tuple", "doctor_id", "shift_id", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # El paciente vive en otro servicio; aquí solo guardamos su id
    patient_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    doctor_id: Mapped[int] = mapped_column(Integer, ForeignKey("doctors.id"), nullable=False)
    shift_id: Mapped[int] = mapped_column(Integer, ForeignKey("shifts.id"), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        default=AppointmentStatus.PENDING,
        nullable=False,
    )
    symptom_initial: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    doctor = relationship("Doctor")
    shift = relationship("Shift")


class RosterPattern(Base):
    """Regla semanal: el médico X trabaja el turno Y cada día de semana Z (1=lunes … 7=domingo)."""
    __tablename__ = "roster_patterns"
    __table_args__ = (
        UniqueConstraint("doctor_id", "shift_id", "day_of_week", name="uq_roster_patterns_rule"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_roster_patterns_dow"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    doctor_id: Mapped[int] = mapped_column(Integer, ForeignKey("doctors.id"), nullable=False)
    shift_id: Mapped[int] = mapped_column(Integer, ForeignKey("shifts.id"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), default="")
    message: Mapped[str] = mapped_column(Text, default="")
    related_appointment_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("appointments.id"), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
