from datetime import timedelta

from conftest import ADMIN, book, put_on_shift


def test_root_and_health(client, db):
    assert client.get("/").json()["ok"] is True
    r = client.get("/admin/health")
    assert r.status_code == 200
    assert r.json()["shift_capacity_default"] == 2


def test_catalog(client, clinic):
    shifts = client.get("/shifts").json()
    assert [s["name"] for s in shifts] == ["Mañana", "Tarde"]
    assert shifts[0]["startTime"] == "08:00:00"
    assert shifts[0]["capacity"] == 2

    r = client.get(f"/specialties/{clinic.cardio}/doctors")
    assert r.status_code == 200
    assert r.json()["count"] == 3

    r = client.get("/shifts/999")
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_availability_endpoint(client, db, clinic, tomorrow):
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    book(db, clinic.d1, clinic.morning, tomorrow)

    r = client.get("/availability", params={"specialtyId": clinic.cardio, "date": tomorrow.isoformat()})

    assert r.status_code == 200
    assert r.json() == [{"doctorId": clinic.d1, "shiftTemplateId": clinic.morning, "remainingCapacity": 1}]


def test_availability_bad_date(client, clinic):
    r = client.get("/availability", params={"specialtyId": clinic.cardio, "date": "mañana"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_request"


def test_book_appointment(client, db, clinic, tomorrow):
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    payload = {
        "doctorId": clinic.d1,
        "shiftTemplateId": clinic.morning,
        "date": tomorrow.isoformat(),
        "patientId": 55,
        "symptomInitial": "tos",
    }

    r = client.post("/appointments", json=payload)

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "PENDING"
    assert (body["doctorId"], body["shiftTemplateId"], body["patientId"]) == (clinic.d1, clinic.morning, 55)

    r = client.get("/appointments", params={"patientId": 55})
    assert [a["id"] for a in r.json()] == [body["id"]]


def test_book_errors(client, db, clinic, tomorrow):
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    base = {"doctorId": clinic.d1, "shiftTemplateId": clinic.morning, "patientId": 1}

    past = client.post("/appointments", json={**base, "date": (tomorrow - timedelta(days=3)).isoformat()})
    assert past.status_code == 400
    assert past.json() == {"ok": False, "error": "invalid_request", "detail": past.json()["detail"]}

    assert client.post("/appointments", json={**base, "date": None}).status_code == 400
    no_patient = {"doctorId": clinic.d1, "shiftTemplateId": clinic.morning, "date": tomorrow.isoformat()}
    assert client.post("/appointments", json=no_patient).status_code == 400

    for pid in (1, 2):
        assert client.post("/appointments", json={**base, "patientId": pid, "date": tomorrow.isoformat()}).status_code == 201
    full = client.post("/appointments", json={**base, "patientId": 3, "date": tomorrow.isoformat()})
    assert full.status_code == 409
    assert full.json()["error"] == "slot_unavailable"


def test_appointment_lifecycle_endpoints(client, db, clinic, tomorrow):
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    appt = book(db, clinic.d1, clinic.morning, tomorrow)

    assert client.put(f"/appointments/{appt.id}/confirm").json()["status"] == "CONFIRMED"
    r = client.put(f"/appointments/{appt.id}/cancel", json={"reason": "viaje"})
    assert r.json()["status"] == "CANCELLED"
    assert r.json()["cancelReason"] == "viaje"
    r = client.put(f"/appointments/{appt.id}/complete")
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_state"


def test_reschedule_preview_endpoint(client, db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    put_on_shift(db, clinic.d2, clinic.morning, tomorrow)
    book(db, clinic.d1, clinic.morning, tomorrow)

    r = client.get(f"/doctor-shifts/{ds.id}/reschedule-preview")

    assert r.status_code == 200
    body = r.json()
    assert body["affectedAppointmentCount"] == 1
    assert body["canAutoReschedule"] is True
    assert body["replacementDoctorId"] == clinic.d2


def test_cancel_and_reschedule_requires_admin(client, db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)

    r = client.post(f"/doctor-shifts/{ds.id}/cancel-and-reschedule", json={"cancelReason": "x"})
    assert r.status_code == 401
    r = client.post(f"/doctor-shifts/{ds.id}/cancel-and-reschedule", json={"cancelReason": "x"},
                    headers={"X-Admin-Token": "nope"})
    assert r.status_code == 401
    assert client.get(f"/doctor-shifts/{ds.id}").json()["status"] == "ACTIVE"


def test_cancel_and_reschedule_endpoint(client, db, clinic, tomorrow):
    ds = put_on_shift(db, clinic.d1, clinic.morning, tomorrow)
    put_on_shift(db, clinic.d2, clinic.morning, tomorrow)
    appt = book(db, clinic.d1, clinic.morning, tomorrow, patient_id=77)

    r = client.post(f"/doctor-shifts/{ds.id}/cancel-and-reschedule", json={"cancelReason": "enfermedad"}, headers=ADMIN)

    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["totalAppointments"], body["rescheduledCount"], body["failedCount"]) == (1, 1, 0)
    assert body["results"] == [
        {"appointmentId": appt.id, "outcome": "RESCHEDULED", "newDoctorId": clinic.d2, "reason": None}
    ]
    assert client.get(f"/appointments/{appt.id}").json()["doctorId"] == clinic.d2

    again = client.post(f"/doctor-shifts/{ds.id}/cancel-and-reschedule", json={"cancelReason": "otra"}, headers=ADMIN)
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_state"

    notes = client.get("/notifications", params={"patientId": 77}).json()
    assert [n["type"] for n in notes] == ["APPOINTMENT_RESCHEDULED"]
    assert client.put(f"/notifications/{notes[0]['id']}/read").json()["isRead"] is True


def test_cancel_unknown_assignment_is_404(client, clinic):
    r = client.post("/doctor-shifts/999/cancel-and-reschedule", json={}, headers=ADMIN)
    assert r.status_code == 404


def test_doctor_shift_endpoints(client, db, clinic, tomorrow):
    r = client.post("/doctor-shifts", json={"doctorId": clinic.d1, "shiftId": clinic.morning,
                                           "workDate": tomorrow.isoformat()}, headers=ADMIN)
    assert r.status_code == 201, r.text
    ds_id = r.json()["id"]

    dup = client.post("/doctor-shifts", json={"doctorId": clinic.d1, "shiftId": clinic.morning,
                                             "workDate": tomorrow.isoformat()}, headers=ADMIN)
    assert dup.status_code == 409

    r = client.get("/doctor-shifts/doctors-by-date", params={"workDate": tomorrow.isoformat()})
    assert r.status_code == 200
    (entry,) = r.json()
    assert entry["doctor"]["id"] == clinic.d1
    assert entry["shifts"][0]["maxSlots"] == 2

    r = client.post(f"/doctor-shifts/{ds_id}/replace", json={"substituteDoctorId": clinic.d2}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["doctorId"] == clinic.d2
    assert client.get(f"/doctor-shifts/{ds_id}").json()["status"] == "REPLACED"


def test_roster_endpoints(client, clinic):
    r = client.post("/roster-patterns", json={"doctorId": clinic.d1, "shiftId": clinic.morning, "dayOfWeek": 1},
                    headers=ADMIN)
    assert r.status_code == 201, r.text

    preview = client.get("/schedule-generation/preview", params={"year": 2031, "month": 3}).json()
    assert preview["totalShifts"] == preview["newShifts"] == 5  # lunes de marzo 2031

    r = client.post("/schedule-generation/generate-for-month", json={"year": 2031, "month": 3}, headers=ADMIN)
    assert r.json()["generated"] == 5


def test_shift_schedule_endpoint(client, db, clinic, tomorrow):
    put_on_shift(db, clinic.d1, clinic.morning, tomorrow)

    r = client.get("/shifts/schedule", params={"startDate": tomorrow.isoformat(),
                                               "endDate": (tomorrow + timedelta(days=6)).isoformat()})

    assert r.status_code == 200, r.text
    (day,) = r.json()
    assert day["date"] == tomorrow.isoformat()
    assert day["shifts"][0]["shift"]["id"] == clinic.morning
    assert day["shifts"][0]["doctors"] == [
        {"id": clinic.d1, "fullName": "Dra. Lan", "doctorCode": "BS001", "remainingCapacity": 2}
    ]
    bad = client.get("/shifts/schedule", params={"startDate": tomorrow.isoformat(), "endDate": "2000-01-01"})
    assert bad.status_code == 400
