from __future__ import annotations

from datetime import date as date_type, datetime, time
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """En el cable todo va en camelCase; en Python seguimos en snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ───────────── Catálogos ─────────────
class ShiftOut(ApiModel):
    id: int
    name: str
    start_time: time
    end_time: time
    description: Optional[str] = None
    capacity: int


class SpecialtyOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None


class DoctorOut(ApiModel):
    id: int
    specialty_id: int
    full_name: str
    doctor_code: Optional[str] = None


class SpecialtyDoctorsOut(ApiModel):
    specialty: SpecialtyOut
    doctors: list[DoctorOut]
    count: int


# ───────────── Disponibilidad ─────────────
class AvailabilityEntry(ApiModel):
    doctor_id: int
    shift_template_id: int
    remaining_capacity: int


# ───────────── Citas ─────────────
class BookRequest(ApiModel):
    doctor_id: int
    shift_template_id: int = Field(validation_alias=AliasChoices("shiftTemplateId", "shiftId", "shift_template_id"))
    # Se validan en el servicio para responder InvalidRequest y no un 422 genérico
    date: Optional[str] = None
    patient_id: Optional[int] = None
    symptom_initial: Optional[str] = None


class AppointmentUpdateRequest(ApiModel):
    doctor_id: Optional[int] = None
    shift_template_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("shiftTemplateId", "shiftId", "shift_template_id")
    )
    date: Optional[str] = None


class AppointmentCancelRequest(ApiModel):
    reason: Optional[str] = None


class AppointmentOut(ApiModel):
    id: int
    patient_id: int
    doctor_id: int
    shift_template_id: int
    date: date_type
    status: str
    symptom_initial: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, appt) -> "AppointmentOut":
        return cls(
            id=appt.id,
            patient_id=appt.patient_id,
            doctor_id=appt.doctor_id,
            shift_template_id=appt.shift_id,
            date=appt.date,
            status=appt.status.value,
            symptom_initial=appt.symptom_initial,
            cancel_reason=appt.cancel_reason,
            created_at=appt.created_at,
            updated_at=appt.updated_at,
        )


# ───────────── Turnos de médicos ─────────────
class DoctorShiftCreate(ApiModel):
    doctor_id: int
    shift_id: int
    work_date: str


class DoctorShiftOut(ApiModel):
    id: int
    doctor_id: int
    shift_id: int
    work_date: date_type
    status: str
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    replaced_by_id: Optional[int] = None

    @classmethod
    def from_model(cls, ds) -> "DoctorShiftOut":
        return cls(
            id=ds.id,
            doctor_id=ds.doctor_id,
            shift_id=ds.shift_id,
            work_date=ds.work_date,
            status=ds.status.value,
            cancel_reason=ds.cancel_reason,
            cancelled_at=ds.cancelled_at,
            replaced_by_id=ds.replaced_by_id,
        )


class DoctorOnDuty(ApiModel):
    id: int
    doctor_code: Optional[str] = None
    full_name: str
    specialty: str
    shift: ShiftOut
    work_date: date_type


class DoctorDayShift(ApiModel):
    doctor_shift_id: int
    shift: ShiftOut
    work_date: date_type
    status: str
    max_slots: int
    current_bookings: int
    is_full: bool


class DoctorWithShifts(ApiModel):
    doctor: DoctorOut
    shifts: list[DoctorDayShift]
    shift_count: int


class ScheduleDoctor(ApiModel):
    id: int
    full_name: str
    doctor_code: Optional[str] = None
    remaining_capacity: int


class ScheduleShift(ApiModel):
    shift: ShiftOut
    doctors: list[ScheduleDoctor]


class ScheduleDay(ApiModel):
    date: date_type
    shifts: list[ScheduleShift]


class CancelShiftRequest(ApiModel):
    cancel_reason: str = ""


class ReplaceShiftRequest(ApiModel):
    substitute_doctor_id: int


# ───────────── Cancelación y reprogramación ─────────────
class CancellationPreview(ApiModel):
    shift_assignment_id: int
    affected_appointment_count: int
    has_replacement_candidate: bool
    replacement_doctor_id: Optional[int] = None
    can_auto_reschedule: bool
    warning: Optional[str] = None


class AppointmentOutcome(ApiModel):
    appointment_id: int
    outcome: Literal["RESCHEDULED", "FAILED"]
    new_doctor_id: Optional[int] = None
    reason: Optional[str] = None


class RescheduleOutcome(ApiModel):
    shift_assignment_id: int
    total_appointments: int
    rescheduled_count: int
    failed_count: int
    results: list[AppointmentOutcome]


# ───────────── Generación de roster ─────────────
class RosterPatternCreate(ApiModel):
    doctor_id: int
    shift_id: int
    day_of_week: int = Field(ge=1, le=7)
    notes: Optional[str] = None


class RosterPatternOut(ApiModel):
    id: int
    doctor_id: int
    shift_id: int
    day_of_week: int
    is_active: bool
    notes: Optional[str] = None


class GenerationPeriod(ApiModel):
    year: int
    month: int
    start_date: date_type
    end_date: date_type


class PlannedShift(ApiModel):
    date: date_type
    doctor_id: int
    shift_id: int
    exists: bool


class GenerationPreview(ApiModel):
    period: GenerationPeriod
    total_patterns: int
    total_shifts: int
    new_shifts: int
    existing_shifts: int
    shifts: list[PlannedShift]


class GenerationRequest(ApiModel):
    year: int
    month: int = Field(ge=1, le=12)


class GenerationResult(ApiModel):
    message: str
    generated: int
    skipped: int
    period: GenerationPeriod


# ───────────── Notificaciones ─────────────
class NotificationOut(ApiModel):
    id: int
    patient_id: int
    type: str
    title: str
    message: str
    related_appointment_id: Optional[int] = None
    is_read: bool
    created_at: datetime
