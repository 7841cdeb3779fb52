"""Persistence-side orchestration of period and session generation.

Each function receives the SQLAlchemy session to work with so the same code
runs against the request-scoped ``db.session`` and any other session.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, List, Optional, Union

from flask import current_app
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from .dates import as_date, get_week_start
from .models import (
    AcademicPeriod,
    AcademicStructure,
    CourseSession,
    SchoolYear,
    SessionException,
    WeeklyTemplate,
)
from .periods import PeriodCalculator, PeriodStructureError
from .presets import distribution_for_year, get_preset
from .sessions import (
    GeneratedSession,
    SessionExceptionData,
    WeekSessionGenerator,
    added_session_id,
    parse_dynamic_session_id,
    planned_session_id,
)


@dataclass
class GenerationReport:
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.successful + self.skipped + self.failed

    def as_dict(self) -> dict[str, Any]:
        return {
            "successful": self.successful,
            "skipped": self.skipped,
            "failed": self.failed,
            "updated": self.updated,
            "total": self.total,
            "errors": list(self.errors),
        }


def _replace_periods(session, school_year: SchoolYear, generated) -> list[AcademicPeriod]:
    school_year.periods.clear()
    session.flush()
    periods = [AcademicPeriod.from_generated(period) for period in generated]
    school_year.periods.extend(periods)
    session.commit()
    return periods


def apply_academic_structure(
    session,
    school_year: SchoolYear,
    structure: AcademicStructure,
    teacher_id: str,
    *,
    today: date | None = None,
) -> list[AcademicPeriod]:
    """Validate ``structure`` against the year and store freshly cut periods."""

    report = PeriodCalculator.validate_structure_for_school_year(structure, school_year)
    if not report.is_valid:
        raise PeriodStructureError("; ".join(report.errors), report.errors)

    generated = PeriodCalculator.generate_periods(
        school_year, structure, teacher_id, today=today
    )
    periods = _replace_periods(session, school_year, generated)
    current_app.logger.info(
        "%s période(s) générée(s) pour l'année %s (%s).",
        len(periods),
        school_year.name,
        structure.period_model,
    )
    return periods


def apply_preset(
    session,
    school_year: SchoolYear,
    preset_key: str,
    teacher_id: str,
    *,
    today: date | None = None,
) -> list[AcademicPeriod]:
    """Store the periods of a preset calendar, moved onto ``school_year``."""

    preset = get_preset(preset_key)
    structure = AcademicStructure(
        name=preset["name"],
        period_model=preset["period_model"],
        periods_per_year=preset["periods_per_year"],
        period_names=preset["period_names"],
    )
    distribution = distribution_for_year(
        preset, school_year.start_date, school_year.end_date
    )
    generated = PeriodCalculator.generate_periods_with_custom_dates(
        school_year,
        structure,
        teacher_id,
        distribution,
        today=today,
    )
    periods = _replace_periods(session, school_year, generated)
    current_app.logger.info(
        "Préréglage %s appliqué à l'année %s (%s période(s)).",
        preset_key,
        school_year.name,
        len(periods),
    )
    return periods


def _teacher_templates(session, teacher_id: str) -> list[WeeklyTemplate]:
    return list(
        session.scalars(
            select(WeeklyTemplate)
            .where(
                WeeklyTemplate.teacher_id == teacher_id,
                WeeklyTemplate.is_active.is_(True),
            )
            .order_by(WeeklyTemplate.day_of_week, WeeklyTemplate.id)
        )
    )


def _exceptions_between(
    session,
    teacher_id: str,
    templates: Iterable[WeeklyTemplate],
    start: date,
    end: date,
) -> list[SessionException]:
    """Exceptions of the teacher's templates plus their own template-less additions."""
    template_ids = [template.id for template in templates]
    query = select(SessionException).where(
        SessionException.exception_date >= start,
        SessionException.exception_date <= end,
        or_(
            SessionException.template_id.in_(template_ids),
            (SessionException.template_id.is_(None))
            & (SessionException.created_by == teacher_id),
        ),
    )
    return list(session.scalars(query.order_by(SessionException.exception_date)))


def preview_week(session, teacher_id: str, week_start: date) -> list[GeneratedSession]:
    week_start = get_week_start(week_start)
    templates = _teacher_templates(session, teacher_id)
    exceptions = _exceptions_between(
        session, teacher_id, templates, week_start, week_start + timedelta(days=6)
    )
    return WeekSessionGenerator.generate_week_sessions(week_start, templates, exceptions)


def preview_range(
    session, teacher_id: str, start: date, end: date
) -> list[GeneratedSession]:
    templates = _teacher_templates(session, teacher_id)
    exceptions = _exceptions_between(session, teacher_id, templates, start, end)
    return WeekSessionGenerator.generate_school_year_sessions(
        start, end, templates, exceptions
    )


def _reconcile_stored_sessions(
    session, exceptions: Iterable[SessionException], report: GenerationReport
) -> None:
    # Rows stored before a cancellation or a move still carry the plain id.
    by_session_id = {
        planned_session_id(exception.template_id, exception.exception_date): exception
        for exception in exceptions
        if exception.type in ("cancelled", "moved")
    }
    if not by_session_id:
        return
    stored = session.scalars(
        select(CourseSession).where(
            CourseSession.id.in_(list(by_session_id)),
            CourseSession.status == "planned",
        )
    ).all()
    for row in stored:
        exception = by_session_id[row.id]
        if exception.type == "cancelled":
            row.status = "cancelled"
            row.exception_id = exception.id
            row.notes = exception.reason or row.notes
        else:
            session.delete(row)
        report.updated += 1


def materialise_sessions(
    session, teacher_id: str, start: date, end: date
) -> GenerationReport:
    """Store generated sessions that are not persisted yet.

    Planned rows stored before a cancellation are marked ``cancelled``; rows
    stored before a move are replaced by the moved occurrence.
    """

    start = as_date(start)
    end = as_date(end)
    if start > end:
        raise ValueError("La date de début doit précéder la date de fin.")

    templates = _teacher_templates(session, teacher_id)
    exceptions = _exceptions_between(session, teacher_id, templates, start, end)
    generated = WeekSessionGenerator.generate_school_year_sessions(
        start, end, templates, exceptions
    )
    report = GenerationReport()
    _reconcile_stored_sessions(session, exceptions, report)
    if not generated:
        report.errors.append("Aucune session à générer pour cette période")

    existing_ids = set(
        session.scalars(
            select(CourseSession.id).where(
                CourseSession.id.in_([item.id for item in generated])
            )
        )
    )
    for item in generated:
        if item.id in existing_ids:
            report.skipped += 1
            continue
        if not item.class_id or not item.subject_id:
            report.failed += 1
            report.errors.append(
                f"{item.id} : classe ou matière manquante pour le {item.session_date:%d/%m/%Y}"
            )
            continue
        session.add(CourseSession.from_generated(item))
        existing_ids.add(item.id)
        report.successful += 1

    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    current_app.logger.info(
        "Génération %s → %s pour %s : %s créée(s), %s ignorée(s), %s mise(s) à jour, %s en échec.",
        start,
        end,
        teacher_id,
        report.successful,
        report.skipped,
        report.updated,
        report.failed,
    )
    for message in report.errors:
        current_app.logger.warning("Génération de séances : %s", message)
    return report


def resolve_session(
    session, session_id: str
) -> Optional[Union[CourseSession, GeneratedSession]]:
    """Find a session by id, regenerating it when it was never stored.

    Stored rows win. Otherwise ``session-{template}-{date}`` ids are rebuilt
    from their template and ``session-added-{exception}`` ids from their
    addition. ``None`` means the id is malformed or names no occurrence.
    """

    stored = session.get(CourseSession, session_id)
    if stored is not None:
        return stored

    if session_id.startswith(added_session_id("")):
        exception = session.get(SessionException, session_id[len(added_session_id("")):])
        if exception is None or exception.type != "added":
            return None
        templates = [exception.template] if exception.template is not None else []
        sessions = WeekSessionGenerator.generate_week_sessions(
            get_week_start(exception.exception_date), templates, [exception]
        )
        return next((item for item in sessions if item.id == session_id), None)

    parsed = parse_dynamic_session_id(session_id)
    if parsed is None:
        current_app.logger.warning("Identifiant de séance invalide : %s", session_id)
        return None
    template_ref, day = parsed
    if not template_ref.isdigit():
        return None
    template = session.get(WeeklyTemplate, int(template_ref))
    if template is None:
        current_app.logger.warning("Template introuvable pour la séance %s", session_id)
        return None
    week_start = get_week_start(day)
    exceptions = session.scalars(
        select(SessionException).where(
            SessionException.template_id == template.id,
            SessionException.exception_date >= week_start,
            SessionException.exception_date <= week_start + timedelta(days=6),
        )
    ).all()
    return WeekSessionGenerator.resolve_session(session_id, [template], exceptions)


def record_exception(session, data: SessionExceptionData) -> SessionException:
    exception = SessionException.from_data(data)
    session.add(exception)
    session.commit()
    current_app.logger.info(
        "Exception %s enregistrée pour le %s (template %s).",
        data.type,
        data.exception_date,
        data.template_id,
    )
    return exception
