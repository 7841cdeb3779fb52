from datetime import date, time, timedelta

from .dates import get_week_start
from .extensions import db
from .models import AcademicStructure, SchoolYear, TimeSlot, WeeklyTemplate
from .presets import ACADEMIC_STRUCTURE_PRESETS, DEFAULT_PRESET
from .services import apply_academic_structure


DEMO_TEACHER_ID = "teacher-demo"


def _school_year_bounds(today: date) -> tuple[date, date]:
    first_year = today.year if today.month >= 9 else today.year - 1
    september_first = date(first_year, 9, 1)
    start = get_week_start(september_first)
    if start < september_first:
        start += timedelta(days=7)
    return start, date(first_year + 1, 6, 30)


def seed_data() -> None:
    if SchoolYear.query.count():
        return

    start, end = _school_year_bounds(date.today())
    school_year = SchoolYear(
        name=f"{start.year}-{end.year}",
        created_by=DEMO_TEACHER_ID,
        start_date=start,
        end_date=end,
        is_active=True,
    )

    structures = []
    for key, preset in ACADEMIC_STRUCTURE_PRESETS.items():
        structures.append(
            AcademicStructure(
                name=preset["name"],
                created_by=DEMO_TEACHER_ID,
                period_model=key,
                periods_per_year=preset["periods_per_year"],
                period_names=preset["period_names"],
            )
        )

    default_slots = [
        ("8h30-9h25", time(8, 30), time(9, 25), False),
        ("9h30-10h25", time(9, 30), time(10, 25), False),
        ("Récréation", time(10, 25), time(10, 40), True),
        ("10h40-11h35", time(10, 40), time(11, 35), False),
        ("13h30-14h25", time(13, 30), time(14, 25), False),
        ("14h30-15h25", time(14, 30), time(15, 25), False),
    ]
    slots = [
        TimeSlot(
            name=name,
            created_by=DEMO_TEACHER_ID,
            start_time=slot_start,
            end_time=slot_end,
            display_order=index,
            is_break=is_break,
        )
        for index, (name, slot_start, slot_end, is_break) in enumerate(default_slots, start=1)
    ]

    db.session.add_all([school_year, *structures, *slots])
    db.session.flush()

    teaching_slots = [slot for slot in slots if not slot.is_break]
    templates = [
        WeeklyTemplate(
            teacher_id=DEMO_TEACHER_ID,
            class_id="class-5a",
            subject_id="subject-maths",
            time_slot_id=teaching_slots[0].id,
            day_of_week=1,
            room="B12",
        ),
        WeeklyTemplate(
            teacher_id=DEMO_TEACHER_ID,
            class_id="class-4b",
            subject_id="subject-maths",
            time_slot_id=teaching_slots[2].id,
            day_of_week=3,
            room="B12",
        ),
        WeeklyTemplate(
            teacher_id=DEMO_TEACHER_ID,
            class_id="class-5a",
            subject_id="subject-physique",
            time_slot_id=teaching_slots[3].id,
            day_of_week=4,
            room="Labo 2",
        ),
    ]
    db.session.add_all(templates)
    db.session.commit()

    default_structure = next(
        structure for structure in structures if structure.period_model == DEFAULT_PRESET
    )
    apply_academic_structure(db.session, school_year, default_structure, DEMO_TEACHER_ID)
