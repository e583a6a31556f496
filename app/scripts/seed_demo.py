# app/scripts/seed_demo.py
from datetime import time, timedelta

from app.database import SessionLocal, init_db
from app import models
from app.services import availability, directory
from app.services.clock import local_today

SHIFTS = [
    ("Mañana", time(8, 0), time(12, 0)),
    ("Tarde", time(13, 0), time(17, 0)),
    ("Noche", time(18, 0), time(21, 0)),
]

SPECIALTIES = {
    "Cardiología": ["Dra. Nguyen Thi Lan", "Dr. Tran Van Minh"],
    "Pediatría": ["Dra. Le Thu Ha"],
}


def seed(db):
    if db.query(models.Shift).count():
        print("La base ya tiene datos; no se siembra nada.")
        return
    shifts = [models.Shift(name=n, start_time=s, end_time=e) for n, s, e in SHIFTS]
    db.add_all(shifts)
    code = 1
    for spec_name, doctors in SPECIALTIES.items():
        spec = models.Specialty(name=spec_name)
        db.add(spec)
        db.flush()
        for full_name in doctors:
            db.add(models.Doctor(specialty_id=spec.id, full_name=full_name, doctor_code=f"BS{code:03d}"))
            code += 1
    db.flush()

    # Todos trabajan mañana y tarde, lunes a viernes
    for doctor in db.query(models.Doctor).all():
        for shift in shifts[:2]:
            for dow in range(1, 6):
                db.add(models.RosterPattern(doctor_id=doctor.id, shift_id=shift.id, day_of_week=dow))
            # y los próximos 7 días ya quedan en el roster
            for i in range(7):
                d = local_today() + timedelta(days=i)
                if d.isoweekday() <= 5:
                    db.add(models.DoctorShift(doctor_id=doctor.id, shift_id=shift.id, work_date=d))
    db.commit()
    print("Datos demo creados.")


def show_availability(db, days: int = 3):
    for spec in directory.list_specialties(db):
        for i in range(days):
            d = local_today() + timedelta(days=i)
            print(f"\n=== {spec.name} | {d.isoformat()} ===")
            loads = availability.resolve(db, spec.id, d)
            if not loads:
                print("Sin turnos disponibles.")
            for s in loads:
                print(f" - doctor={s.doctor_id} shift={s.shift_id} libres={s.remaining}/{s.capacity}")


if __name__ == "__main__":
    init_db()
    db = SessionLocal()
    try:
        seed(db)
        show_availability(db)
    finally:
        db.close()
