"""Academic period calculation.

A school year is cut into ``periods_per_year`` contiguous periods. The
calculator works on any object exposing the attributes of the ``SchoolYear``
and ``AcademicStructure`` models, so it can run on database rows as well as on
unsaved instances.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Sequence

from .dates import as_date, days_between, parse_date_from_iso, utcnow


MIN_DAYS_PER_PERIOD = 7


class PeriodStructureError(ValueError):
    """Raised when a structure cannot be applied to a school year."""

    def __init__(self, message: str, errors: Sequence[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [message])


@dataclass
class PeriodBounds:
    order: int
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return days_between(self.start_date, self.end_date) + 1


@dataclass
class GeneratedPeriod:
    id: str
    created_by: str
    school_year_id: Any
    name: str
    order: int
    start_date: date
    end_date: date
    is_active: bool
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def contains(self, day: date | datetime) -> bool:
        return self.start_date <= as_date(day) <= self.end_date


@dataclass
class ValidationReport:
    is_valid: bool
    errors: list[str]


@dataclass
class PeriodShare:
    name: str
    days: int
    percentage: int


@dataclass
class StructureStats:
    total_days: int
    average_days_per_period: int
    periods_info: list[PeriodShare]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def period_name(period_names: Optional[Mapping[str, Any]], order: int) -> str:
    label = (period_names or {}).get(str(order))
    if isinstance(label, str) and label.strip():
        return label.strip()
    return f"Période {order}"


def _period_contains(period: Any, day: date) -> bool:
    contains = getattr(period, "contains", None)
    if callable(contains):
        return contains(day)
    return as_date(period.start_date) <= day <= as_date(period.end_date)


class PeriodCalculator:
    """Split school years into academic periods and query the result."""

    @classmethod
    def generate_periods(
        cls,
        school_year: Any,
        structure: Any,
        teacher_id: str,
        *,
        today: date | None = None,
    ) -> list[GeneratedPeriod]:
        bounds = cls.calculate_period_dates(
            school_year.start_date,
            school_year.end_date,
            structure.periods_per_year,
        )
        return [
            cls._build_period(school_year, structure, teacher_id, entry, today)
            for entry in bounds
        ]

    @classmethod
    def generate_periods_with_custom_dates(
        cls,
        school_year: Any,
        structure: Any,
        teacher_id: str,
        custom_dates: Iterable[Mapping[str, Any]],
        *,
        today: date | None = None,
    ) -> list[GeneratedPeriod]:
        """Build periods from explicit ``{"start": ..., "end": ...}`` ranges.

        Used for preset calendars; ranges are trusted as given.
        """

        bounds = [
            PeriodBounds(
                order=index,
                start_date=parse_date_from_iso(entry["start"]),
                end_date=parse_date_from_iso(entry["end"]),
            )
            for index, entry in enumerate(custom_dates, start=1)
        ]
        return [
            cls._build_period(school_year, structure, teacher_id, entry, today)
            for entry in bounds
        ]

    @staticmethod
    def calculate_period_dates(
        start: date | datetime, end: date | datetime, periods_count: int
    ) -> list[PeriodBounds]:
        if periods_count is None or periods_count <= 0:
            raise PeriodStructureError(
                f"Le nombre de périodes doit être positif (reçu : {periods_count})."
            )
        start = as_date(start)
        end = as_date(end)
        total_days = days_between(start, end)
        if total_days < periods_count:
            raise PeriodStructureError(
                f"L'année scolaire ({total_days} jours) est trop courte pour "
                f"{periods_count} périodes"
            )
        base_days, remaining_days = divmod(total_days, periods_count)

        bounds: list[PeriodBounds] = []
        current_start = start
        for index in range(periods_count):
            length = base_days + (1 if index < remaining_days else 0)
            period_end = current_start + timedelta(days=length - 1)
            if index == periods_count - 1:
                period_end = end
            bounds.append(PeriodBounds(index + 1, current_start, period_end))
            current_start = period_end + timedelta(days=1)
        return bounds

    @staticmethod
    def _build_period(
        school_year: Any,
        structure: Any,
        teacher_id: str,
        bounds: PeriodBounds,
        today: date | None,
    ) -> GeneratedPeriod:
        reference = as_date(today) if today is not None else date.today()
        return GeneratedPeriod(
            id=f"period-{structure.period_model}-{bounds.order}-{school_year.id}",
            created_by=teacher_id,
            school_year_id=school_year.id,
            name=period_name(structure.period_names, bounds.order),
            order=bounds.order,
            start_date=bounds.start_date,
            end_date=bounds.end_date,
            is_active=bounds.start_date <= reference <= bounds.end_date,
        )

    @staticmethod
    def validate_structure_for_school_year(
        structure: Any, school_year: Any
    ) -> ValidationReport:
        errors: list[str] = []
        periods_count = structure.periods_per_year or 0
        total_days = days_between(school_year.start_date, school_year.end_date)

        if periods_count <= 0:
            errors.append(
                f"Le nombre de périodes doit être positif (reçu : {periods_count})."
            )
        elif total_days < periods_count * MIN_DAYS_PER_PERIOD:
            errors.append(
                f"L'année scolaire ({total_days} jours) est trop courte pour "
                f"{periods_count} périodes"
            )

        names = structure.period_names or {}
        for order in range(1, periods_count + 1):
            label = names.get(str(order))
            if not isinstance(label, str) or not label.strip():
                errors.append(f"Le nom de la période {order} n'est pas défini")

        return ValidationReport(is_valid=not errors, errors=errors)

    @classmethod
    def calculate_structure_stats(
        cls, structure: Any, school_year: Any
    ) -> StructureStats:
        total_days = days_between(school_year.start_date, school_year.end_date)
        bounds = cls.calculate_period_dates(
            school_year.start_date,
            school_year.end_date,
            structure.periods_per_year,
        )
        periods_info = [
            PeriodShare(
                name=period_name(structure.period_names, entry.order),
                days=entry.days,
                percentage=_round_half_up(entry.days / total_days * 100)
                if total_days
                else 0,
            )
            for entry in bounds
        ]
        return StructureStats(
            total_days=total_days,
            average_days_per_period=_round_half_up(
                total_days / structure.periods_per_year
            ),
            periods_info=periods_info,
        )

    @staticmethod
    def find_active_period(periods: Iterable[Any], day: date | None = None) -> Any | None:
        reference = as_date(day) if day is not None else date.today()
        return next(
            (period for period in periods if _period_contains(period, reference)),
            None,
        )

    @staticmethod
    def get_next_period(periods: Iterable[Any], day: date | None = None) -> Any | None:
        reference = as_date(day) if day is not None else date.today()
        ordered = sorted(periods, key=lambda period: period.order)
        return next(
            (period for period in ordered if as_date(period.start_date) > reference),
            None,
        )

    @staticmethod
    def get_previous_period(periods: Iterable[Any], day: date | None = None) -> Any | None:
        reference = as_date(day) if day is not None else date.today()
        ordered = sorted(periods, key=lambda period: period.order, reverse=True)
        return next(
            (period for period in ordered if as_date(period.end_date) < reference),
            None,
        )
