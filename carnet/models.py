from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .dates import as_date, utcnow
from .extensions import db
from .periods import GeneratedPeriod
from .sessions import EXCEPTION_TYPES, GeneratedSession, SessionExceptionData


SESSION_STATUS_CHOICES: tuple[str, ...] = (
    "planned",
    "in_progress",
    "completed",
    "cancelled",
)


def _load_json_object(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    if not isinstance(payload, dict):
        return {}
    return payload


def _dump_json_object(value: Optional[dict[str, Any]]) -> Optional[str]:
    if not value:
        return None
    return json.dumps(value, ensure_ascii=False)


class TimeStampedModel:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class SchoolYear(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    periods: Mapped[List["AcademicPeriod"]] = relationship(
        back_populates="school_year",
        cascade="all, delete-orphan",
        order_by="AcademicPeriod.order",
    )

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="chk_school_year_range"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"SchoolYear<{self.name} {self.start_date}→{self.end_date}>"


class AcademicStructure(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    period_model: Mapped[str] = mapped_column(String(50), nullable=False)
    periods_per_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_labels: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("periods_per_year > 0", name="chk_structure_periods_positive"),
    )

    @property
    def period_names(self) -> dict[str, str]:
        return {
            str(key): str(value)
            for key, value in _load_json_object(self.period_labels).items()
            if value is not None
        }

    @period_names.setter
    def period_names(self, value: Optional[dict[Any, Any]]) -> None:
        cleaned = {
            str(key): str(label).strip()
            for key, label in (value or {}).items()
            if label is not None and str(label).strip()
        }
        self.period_labels = _dump_json_object(cleaned)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"AcademicStructure<{self.period_model} x{self.periods_per_year}>"


class AcademicPeriod(db.Model, TimeStampedModel):
    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    school_year_id: Mapped[int] = mapped_column(
        ForeignKey("school_year.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    order: Mapped[int] = mapped_column("period_order", Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    school_year: Mapped[SchoolYear] = relationship(back_populates="periods")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="chk_academic_period_range"),
        UniqueConstraint("school_year_id", "period_order", name="uq_period_order"),
    )

    @classmethod
    def from_generated(cls, period: GeneratedPeriod) -> "AcademicPeriod":
        return cls(
            id=period.id,
            created_by=period.created_by,
            school_year_id=period.school_year_id,
            name=period.name,
            order=period.order,
            start_date=period.start_date,
            end_date=period.end_date,
            is_active=period.is_active,
        )

    def contains(self, day: date | datetime) -> bool:
        return self.start_date <= as_date(day) <= self.end_date

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"AcademicPeriod<{self.name} {self.start_date}→{self.end_date}>"


class TimeSlot(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_break: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="chk_time_slot_order"),
    )

    @property
    def duration_minutes(self) -> int:
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return end - start

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start_time < other.end_time and self.end_time > other.start_time

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"TimeSlot<{self.name}>"


class WeeklyTemplate(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    class_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slot.id"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    room: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    time_slot: Mapped[TimeSlot] = relationship()
    exceptions: Mapped[List["SessionException"]] = relationship(
        back_populates="template", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="chk_template_day_of_week"),
        UniqueConstraint(
            "teacher_id",
            "day_of_week",
            "time_slot_id",
            name="uq_template_teacher_slot",
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"WeeklyTemplate<{self.class_id}/{self.subject_id} j{self.day_of_week}>"


class SessionException(db.Model, TimeStampedModel):
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("weekly_template.id"), index=True
    )
    exception_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    new_time_slot_id: Mapped[Optional[int]] = mapped_column(ForeignKey("time_slot.id"))
    new_room: Mapped[Optional[str]] = mapped_column(String(50))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    session_payload: Mapped[Optional[str]] = mapped_column(Text)

    template: Mapped[Optional[WeeklyTemplate]] = relationship(back_populates="exceptions")

    __table_args__ = (
        CheckConstraint(
            "type IN ({})".format(", ".join(f"'{value}'" for value in EXCEPTION_TYPES)),
            name="chk_session_exception_type",
        ),
    )

    @property
    def session_data(self) -> dict[str, Any]:
        return _load_json_object(self.session_payload)

    @session_data.setter
    def session_data(self, value: Optional[dict[str, Any]]) -> None:
        self.session_payload = _dump_json_object(value)

    @classmethod
    def from_data(cls, data: SessionExceptionData) -> "SessionException":
        exception = cls(
            id=data.id,
            created_by=data.created_by,
            template_id=data.template_id,
            exception_date=data.exception_date,
            type=data.type,
            new_time_slot_id=data.new_time_slot_id,
            new_room=data.new_room,
            reason=data.reason,
        )
        exception.session_data = data.session_data
        return exception

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"SessionException<{self.type} {self.exception_date}>"


class CourseSession(db.Model, TimeStampedModel):
    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    class_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slot.id"), nullable=False)
    session_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    room: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default="planned", nullable=False)
    objectives: Mapped[Optional[str]] = mapped_column(Text)
    content: Mapped[Optional[str]] = mapped_column(Text)
    homework_assigned: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    attendance_taken: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_moved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_makeup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    template_id: Mapped[Optional[int]] = mapped_column(ForeignKey("weekly_template.id"))
    exception_id: Mapped[Optional[str]] = mapped_column(ForeignKey("session_exception.id"))

    time_slot: Mapped[TimeSlot] = relationship()

    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(
                ", ".join(f"'{value}'" for value in SESSION_STATUS_CHOICES)
            ),
            name="chk_course_session_status",
        ),
    )

    @classmethod
    def from_generated(cls, session: GeneratedSession) -> "CourseSession":
        return cls(
            id=session.id,
            created_by=session.created_by,
            class_id=session.class_id,
            subject_id=session.subject_id,
            time_slot_id=session.time_slot_id,
            session_date=session.session_date,
            room=session.room,
            status=session.status,
            objectives=session.objectives,
            content=session.content,
            homework_assigned=session.homework_assigned,
            notes=session.notes,
            attendance_taken=session.attendance_taken,
            is_moved=session.is_moved,
            is_makeup=session.is_makeup,
            template_id=session.template_id,
            exception_id=session.exception_id,
        )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"CourseSession<{self.class_id}/{self.subject_id} {self.session_date}>"
