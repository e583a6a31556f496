import os
import tempfile
import threading
from datetime import time, timedelta
from types import SimpleNamespace

import pytest

# La configuración se lee al importar app.*, así que va antes de cualquier import
_DB_DIR = tempfile.mkdtemp(prefix="clinic-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["ADMIN_TOKEN"] = "test-admin"
os.environ["ROSTER_JOB_ENABLED"] = "false"
os.environ["SHIFT_CAPACITY_DEFAULT"] = "2"
os.environ["SHIFT_CAPACITY_OVERRIDES"] = "{}"
os.environ["RESCHEDULE_LEASE_SECONDS"] = "120"

from fastapi.testclient import TestClient  # noqa: E402

from app import models  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.services import booking, doctor_shifts  # noqa: E402
from app.services.clock import local_today  # noqa: E402

ADMIN = {"X-Admin-Token": "test-admin"}


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def tomorrow():
    return local_today() + timedelta(days=1)


@pytest.fixture
def clinic(db):
    """Cardiología con tres médicos, Pediatría con uno, turnos mañana y tarde."""
    cardio = models.Specialty(name="Cardiología")
    peds = models.Specialty(name="Pediatría")
    db.add_all([cardio, peds])
    db.flush()

    d1 = models.Doctor(specialty_id=cardio.id, full_name="Dra. Lan", doctor_code="BS001")
    d2 = models.Doctor(specialty_id=cardio.id, full_name="Dr. Minh", doctor_code="BS002")
    d3 = models.Doctor(specialty_id=cardio.id, full_name="Dr. Hung", doctor_code="BS003")
    d4 = models.Doctor(specialty_id=peds.id, full_name="Dra. Ha", doctor_code="BS004")
    morning = models.Shift(name="Mañana", start_time=time(8, 0), end_time=time(12, 0))
    afternoon = models.Shift(name="Tarde", start_time=time(13, 0), end_time=time(17, 0))
    db.add_all([d1, d2, d3, d4, morning, afternoon])
    db.commit()

    return SimpleNamespace(
        cardio=cardio.id, peds=peds.id,
        d1=d1.id, d2=d2.id, d3=d3.id, d4=d4.id,
        morning=morning.id, afternoon=afternoon.id,
    )


def put_on_shift(db, doctor_id, shift_id, day):
    return doctor_shifts.create_assignment(db, doctor_id, shift_id, day)


def book(db, doctor_id, shift_id, day, patient_id=100, confirm=False):
    appt = booking.allocate(db, doctor_id, shift_id, day, patient_id)
    if confirm:
        appt = booking.confirm(db, appt.id)
    return appt


def run_together(*targets, timeout=60):
    """Arranca cada función en su hilo, todas a la vez tras una barrera."""
    barrier = threading.Barrier(len(targets))

    def start(fn):
        barrier.wait()
        fn()

    threads = [threading.Thread(target=start, args=(fn,)) for fn in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=timeout)
