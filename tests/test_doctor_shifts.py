from datetime import timedelta

import pytest

from app import models
from app.errors import InvalidRequest, InvalidState, NotFound, SlotUnavailable
from app.services import booking, doctor_shifts, rescheduling, slots

from conftest import book, put_on_shift


def test_create_assignment_rejects_duplicate_active(db, clinic, tomorrow):
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)

    with pytest.raises(InvalidState):
        put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    # otro turno el mismo día sí vale
    assert put_on_shift(db, clinic.d1, clinic.afternoon, tomorrow).status == models.DoctorShiftStatus.ACTIVE


def test_create_assignment_unknown_doctor_or_shift(db, clinic, tomorrow):
    with pytest.raises(NotFound):
        put_on_shift(db, 999, clinic.morning, tomorrow)
    with pytest.raises(NotFound):
        put_on_shift(db, clinic.d1, 999, tomorrow)


def test_get_unknown_assignment(db, clinic):
    with pytest.raises(NotFound):
        doctor_shifts.get_assignment(db, 31337)


def test_on_duty_lists_active_shifts(db, clinic):
    from app.services.clock import local_today

    today = local_today()
    put_on_shift(db, clinic.d4, clinic.afternoon, today)
    put_on_shift(db, clinic.d1, clinic.morning, today)
    cancelled = put_on_shift(db, clinic.d2, clinic.morning, today)
    rescheduling.cancel_and_reschedule(db, cancelled.id, "")

    duty = doctor_shifts.on_duty(db, today)

    assert [(d.id, d.shift.id) for d in duty] == [(clinic.d1, clinic.morning), (clinic.d4, clinic.afternoon)]
    assert duty[1].specialty == "Pediatría"


def test_restore_creates_new_active_row(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    rescheduling.cancel_and_reschedule(db, ds.id, "vacaciones")

    restored = doctor_shifts.restore(db, ds.id)

    assert restored.id != ds.id
    assert restored.status == models.DoctorShiftStatus.ACTIVE
    assert doctor_shifts.get_assignment(db, ds.id).status == models.DoctorShiftStatus.CANCELLED
    # y vuelve a aceptar citas
    assert book(db, clinic.d1, clinic.morning, tomorrow).doctor_id == clinic.d1


def test_restore_requires_cancelled_and_no_active_twin(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    with pytest.raises(InvalidState):
        doctor_shifts.restore(db, ds.id)

    rescheduling.cancel_and_reschedule(db, ds.id, "")
    doctor_shifts.restore(db, ds.id)
    with pytest.raises(InvalidState):
        doctor_shifts.restore(db, ds.id)


def test_restore_waits_for_reschedule_to_finish(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    assert doctor_shifts.mark_cancelled(db, ds.id, "")

    with pytest.raises(InvalidState):
        doctor_shifts.restore(db, ds.id)


def test_replace_moves_all_appointments(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    a1 = book(db, clinic.d1, clinic.morning, tomorrow, patient_id=1)
    a2 = book(db, clinic.d1, clinic.morning, tomorrow, patient_id=2, confirm=True)

    new = doctor_shifts.replace(db, ds.id, clinic.d3)

    assert (new.doctor_id, new.shift_id, new.work_date) == (clinic.d3, clinic.morning, tomorrow)
    assert new.status == models.DoctorShiftStatus.ACTIVE
    old = doctor_shifts.get_assignment(db, ds.id)
    assert old.status == models.DoctorShiftStatus.REPLACED
    assert old.replaced_by_id == new.id
    assert booking.get_appointment(db, a1.id).doctor_id == clinic.d3
    assert booking.get_appointment(db, a2.id).status == models.AppointmentStatus.CONFIRMED
    assert slots.booked(db, clinic.d1, clinic.morning, tomorrow) == 0
    assert slots.booked(db, clinic.d3, clinic.morning, tomorrow) == 2


def test_replace_requires_same_specialty(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)

    with pytest.raises(InvalidRequest):
        doctor_shifts.replace(db, ds.id, clinic.d4)
    with pytest.raises(InvalidRequest):
        doctor_shifts.replace(db, ds.id, clinic.d1)
    assert doctor_shifts.get_assignment(db, ds.id).status == models.DoctorShiftStatus.ACTIVE


def test_replace_is_all_or_nothing(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    put_on_shift(db, clinic.d2, clinic.morning, tomorrow)
    a = book(db, clinic.d1, clinic.morning, tomorrow, patient_id=1)
    book(db, clinic.d2, clinic.morning, tomorrow, patient_id=2)

    # d2 ya tiene ese turno ACTIVE: no se puede crear otro
    with pytest.raises(InvalidState):
        doctor_shifts.replace(db, ds.id, clinic.d2)

    assert doctor_shifts.get_assignment(db, ds.id).status == models.DoctorShiftStatus.ACTIVE
    assert booking.get_appointment(db, a.id).doctor_id == clinic.d1
    assert slots.booked(db, clinic.d1, clinic.morning, tomorrow) == 1


def test_replace_without_room_for_everyone(db, clinic, tomorrow, monkeypatch):
    from app.config import settings
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    book(db, clinic.d1, clinic.morning, tomorrow, patient_id=1)
    book(db, clinic.d1, clinic.morning, tomorrow, patient_id=2)
    monkeypatch.setitem(settings.SHIFT_CAPACITY_OVERRIDES, clinic.morning, 1)

    with pytest.raises(SlotUnavailable):
        doctor_shifts.replace(db, ds.id, clinic.d3)

    assert doctor_shifts.find_active(db, clinic.d3, clinic.morning, tomorrow) is None
    assert doctor_shifts.get_assignment(db, ds.id).status == models.DoctorShiftStatus.ACTIVE


def test_replace_needs_active_assignment(db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    rescheduling.cancel_and_reschedule(db, ds.id, "")

    with pytest.raises(InvalidState):
        doctor_shifts.replace(db, ds.id, clinic.d2)


def test_schedule_groups_by_date_and_shift(db, clinic, tomorrow):
    later = tomorrow + timedelta(days=2)
    put_on_shift(db, clinic.d2, clinic.afternoon, tomorrow)
    put_on_shift(db, clinic.d4, clinic.morning, tomorrow)
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    put_on_shift(db, clinic.d3, clinic.morning, later)
    book(db, clinic.d1, clinic.morning, tomorrow)
    off = put_on_shift(db, clinic.d3, clinic.afternoon, tomorrow)
    rescheduling.cancel_and_reschedule(db, off.id, "")

    days = doctor_shifts.schedule(db, tomorrow, tomorrow + timedelta(days=3))

    assert [d.date for d in days] == [tomorrow, later]
    morning, afternoon = days[0].shifts
    assert morning.shift.id == clinic.morning
    assert [(doc.id, doc.remaining_capacity) for doc in morning.doctors] == [(clinic.d1, 1), (clinic.d4, 2)]
    assert [doc.id for doc in afternoon.doctors] == [clinic.d2]
    assert [doc.full_name for doc in days[1].shifts[0].doctors] == ["Dr. Hung"]


def test_schedule_rejects_bad_ranges(db, clinic, tomorrow):
    with pytest.raises(InvalidRequest):
        doctor_shifts.schedule(db, tomorrow, tomorrow - timedelta(days=1))
    with pytest.raises(InvalidRequest):
        doctor_shifts.schedule(db, tomorrow, tomorrow + timedelta(days=40))
