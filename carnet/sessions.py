"""Expansion of weekly templates into dated course sessions."""
from __future__ import annotations

import re
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

from .dates import (
    as_date,
    calculate_session_date,
    generate_exception_key,
    get_week_start,
    is_date_in_week,
    utcnow,
)


EXCEPTION_TYPES: tuple[str, ...] = ("cancelled", "moved", "added")
DEFAULT_SESSION_STATUS = "planned"

DYNAMIC_SESSION_ID = re.compile(
    r"^session-(?P<template>.+)-(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})$"
)


class SessionGenerationError(ValueError):
    """Base class for generation input errors."""


class IncompleteTemplateError(SessionGenerationError):
    pass


class IncompleteExceptionError(SessionGenerationError):
    pass


@dataclass
class SessionExceptionData:
    id: str
    template_id: Any
    exception_date: date
    type: str
    new_time_slot_id: Any = None
    new_room: Optional[str] = None
    reason: Optional[str] = None
    session_data: Optional[dict[str, Any]] = None
    created_by: Optional[str] = None


@dataclass
class GeneratedSession:
    id: str
    created_by: Optional[str]
    class_id: Optional[str]
    subject_id: Optional[str]
    time_slot_id: Any
    session_date: date
    room: Optional[str] = None
    status: str = DEFAULT_SESSION_STATUS
    objectives: str = ""
    content: str = ""
    homework_assigned: str = ""
    notes: str = ""
    attendance_taken: bool = False
    is_moved: bool = False
    is_makeup: bool = False
    template_id: Any = None
    exception_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def planned_session_id(template_id: Any, day: date | datetime) -> str:
    """Identifier of the occurrence of a template on ``day``."""
    return f"session-{template_id}-{as_date(day).isoformat()}"


def added_session_id(exception_id: str) -> str:
    return f"session-added-{exception_id}"


def is_dynamic_session_id(session_id: str) -> bool:
    return DYNAMIC_SESSION_ID.match(session_id or "") is not None


def parse_dynamic_session_id(session_id: str) -> Optional[tuple[str, date]]:
    """Split ``session-{template}-{YYYY-MM-DD}`` into its template id and date.

    Returns ``None`` when the id does not follow that shape or names an
    impossible date.
    """
    match = DYNAMIC_SESSION_ID.match(session_id or "")
    if match is None:
        return None
    try:
        day = date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError:
        return None
    return match["template"], day


def _check_template(template: Any) -> None:
    missing = [
        name
        for name in ("class_id", "subject_id", "time_slot_id")
        if getattr(template, name, None) in (None, "")
    ]
    if missing:
        raise IncompleteTemplateError(
            f"Template {template.id} incomplet : {', '.join(missing)} manquant(s)."
        )
    day_of_week = getattr(template, "day_of_week", None)
    if not isinstance(day_of_week, int) or not 1 <= day_of_week <= 7:
        raise IncompleteTemplateError(
            f"Template {template.id} : jour de la semaine invalide ({day_of_week})."
        )


class WeekSessionGenerator:
    """Project weekly templates onto concrete dates.

    Templates and exceptions are read-only inputs; every call returns freshly
    built ``GeneratedSession`` objects.
    """

    @classmethod
    def generate_week_sessions(
        cls,
        week_start: date | datetime,
        templates: Sequence[Any],
        exceptions: Iterable[Any] = (),
    ) -> list[GeneratedSession]:
        week_start = as_date(week_start)
        exceptions = list(exceptions)
        exceptions_by_key = {
            generate_exception_key(exception.template_id, exception.exception_date): exception
            for exception in exceptions
            if exception.type != "added"
        }

        sessions: list[GeneratedSession] = []
        for template in templates:
            _check_template(template)
            session_date = calculate_session_date(week_start, template.day_of_week)
            exception = exceptions_by_key.get(
                generate_exception_key(template.id, session_date)
            )
            if exception is not None and exception.type == "cancelled":
                continue
            if exception is not None and exception.type == "moved":
                sessions.append(cls._moved_session(template, session_date, exception))
            else:
                sessions.append(cls._planned_session(template, session_date))

        templates_by_id = {template.id: template for template in templates}
        for exception in exceptions:
            if exception.type != "added":
                continue
            sessions.append(
                cls._added_session(exception, templates_by_id.get(exception.template_id))
            )
        return sessions

    @classmethod
    def generate_school_year_sessions(
        cls,
        school_year_start: date | datetime,
        school_year_end: date | datetime,
        templates: Sequence[Any],
        exceptions: Iterable[Any] = (),
    ) -> list[GeneratedSession]:
        start = as_date(school_year_start)
        end = as_date(school_year_end)
        exceptions = list(exceptions)

        sessions: list[GeneratedSession] = []
        current_week = get_week_start(start)
        while current_week <= end:
            week_exceptions = [
                exception
                for exception in exceptions
                if is_date_in_week(exception.exception_date, current_week)
            ]
            sessions.extend(
                session
                for session in cls.generate_week_sessions(
                    current_week, templates, week_exceptions
                )
                if start <= session.session_date <= end
            )
            current_week += timedelta(days=7)
        return sessions

    @staticmethod
    def generate_session_dates(
        template: Any, start: date | datetime, end: date | datetime
    ) -> list[date]:
        """Every date on which ``template`` occurs between ``start`` and ``end``."""
        _check_template(template)
        start = as_date(start)
        end = as_date(end)
        dates: list[date] = []
        current = calculate_session_date(get_week_start(start), template.day_of_week)
        if current < start:
            current += timedelta(days=7)
        while current <= end:
            dates.append(current)
            current += timedelta(days=7)
        return dates

    @classmethod
    def calculate_session_count(
        cls, template: Any, start: date | datetime, end: date | datetime
    ) -> int:
        return len(cls.generate_session_dates(template, start, end))

    @classmethod
    def resolve_session(
        cls,
        session_id: str,
        templates: Sequence[Any],
        exceptions: Iterable[Any] = (),
    ) -> Optional[GeneratedSession]:
        """Rebuild the single occurrence named by a ``session-{template}-{date}`` id.

        Only the week of that date is generated. Cancelled or moved
        occurrences no longer carry the id and resolve to ``None``.
        """
        parsed = parse_dynamic_session_id(session_id)
        if parsed is None:
            return None
        template_ref, day = parsed
        matching = [template for template in templates if str(template.id) == template_ref]
        if not matching:
            return None
        week_start = get_week_start(day)
        week_exceptions = [
            exception
            for exception in exceptions
            if exception.type != "added"
            and is_date_in_week(exception.exception_date, week_start)
        ]
        return next(
            (
                session
                for session in cls.generate_week_sessions(week_start, matching, week_exceptions)
                if session.id == session_id
            ),
            None,
        )

    @staticmethod
    def _planned_session(template: Any, session_date: date) -> GeneratedSession:
        return GeneratedSession(
            id=planned_session_id(template.id, session_date),
            created_by=template.teacher_id,
            class_id=template.class_id,
            subject_id=template.subject_id,
            time_slot_id=template.time_slot_id,
            session_date=session_date,
            room=getattr(template, "room", None),
            template_id=template.id,
        )

    @staticmethod
    def _moved_session(
        template: Any, session_date: date, exception: Any
    ) -> GeneratedSession:
        # The occurrence stays on its natural date; the relocated slot itself
        # comes from a separate "added" exception.
        time_slot_id = exception.new_time_slot_id or template.time_slot_id
        return GeneratedSession(
            id=f"{planned_session_id(template.id, session_date)}-{time_slot_id}-{exception.id}",
            created_by=template.teacher_id,
            class_id=template.class_id,
            subject_id=template.subject_id,
            time_slot_id=time_slot_id,
            session_date=session_date,
            room=exception.new_room or None,
            notes=exception.reason or "",
            is_moved=True,
            template_id=template.id,
            exception_id=exception.id,
        )

    @staticmethod
    def _added_session(exception: Any, template: Any | None) -> GeneratedSession:
        if exception.new_time_slot_id in (None, ""):
            raise IncompleteExceptionError(
                f"Exception {exception.id} : créneau horaire manquant pour l'ajout."
            )
        payload = getattr(exception, "session_data", None) or {}
        reason = exception.reason or ""
        return GeneratedSession(
            id=added_session_id(exception.id),
            created_by=payload.get("created_by")
            or getattr(exception, "created_by", None)
            or getattr(template, "teacher_id", None),
            class_id=payload.get("class_id") or getattr(template, "class_id", None),
            subject_id=payload.get("subject_id")
            or getattr(template, "subject_id", None),
            time_slot_id=exception.new_time_slot_id,
            session_date=as_date(exception.exception_date),
            room=exception.new_room or payload.get("room"),
            objectives=payload.get("objectives", ""),
            content=payload.get("content", ""),
            homework_assigned=payload.get("homework_assigned", ""),
            notes=f"Session ajoutée : {reason}" if reason else "Session ajoutée",
            is_moved=True,
            is_makeup=bool(payload.get("is_makeup", True)),
            template_id=exception.template_id,
            exception_id=exception.id,
        )


def _exception_id(kind: str) -> str:
    return f"exception-{kind}-{uuid.uuid4().hex}"


class SessionExceptionUtils:
    """Constructors for one-off exceptions."""

    @staticmethod
    def create_cancellation(
        template_id: Any, day: date | datetime, reason: str
    ) -> SessionExceptionData:
        return SessionExceptionData(
            id=_exception_id("cancel"),
            template_id=template_id,
            exception_date=as_date(day),
            type="cancelled",
            reason=reason,
        )

    @staticmethod
    def create_move(
        template_id: Any,
        day: date | datetime,
        new_time_slot_id: Any,
        new_room: str | None = None,
        reason: str | None = None,
    ) -> SessionExceptionData:
        return SessionExceptionData(
            id=_exception_id("move"),
            template_id=template_id,
            exception_date=as_date(day),
            type="moved",
            new_time_slot_id=new_time_slot_id,
            new_room=new_room,
            reason=reason,
        )

    @staticmethod
    def create_addition(
        day: date | datetime,
        time_slot_id: Any,
        room: str | None,
        reason: str,
        session_data: dict[str, Any] | None = None,
        template_id: Any = None,
        created_by: str | None = None,
    ) -> SessionExceptionData:
        """Build an ad-hoc session.

        ``created_by`` is the teacher the addition belongs to; it defaults to
        ``session_data["created_by"]``. Additions without a template are only
        picked up by that teacher's generation runs.
        """
        payload = dict(session_data) if session_data else None
        return SessionExceptionData(
            id=_exception_id("add"),
            template_id=template_id,
            exception_date=as_date(day),
            type="added",
            new_time_slot_id=time_slot_id,
            new_room=room,
            reason=reason,
            session_data=payload,
            created_by=created_by or (payload or {}).get("created_by"),
        )
