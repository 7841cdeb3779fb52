"""Ready-made academic structures offered when configuring a school year."""
from __future__ import annotations

import calendar
from datetime import date
from typing import Any

from .dates import parse_date_from_iso
from .periods import PeriodStructureError


ACADEMIC_STRUCTURE_PRESETS: dict[str, dict[str, Any]] = {
    "trimestre": {
        "name": "Système Trimestre (France)",
        "period_model": "trimestre",
        "periods_per_year": 3,
        "period_names": {
            "1": "1er Trimestre",
            "2": "2ème Trimestre",
            "3": "3ème Trimestre",
        },
        "distribution": [
            {"start": "2025-09-01", "end": "2025-12-20"},
            {"start": "2026-01-06", "end": "2026-03-28"},
            {"start": "2026-04-14", "end": "2026-06-30"},
        ],
    },
    "semestre": {
        "name": "Système Semestre (Universitaire)",
        "period_model": "semestre",
        "periods_per_year": 2,
        "period_names": {
            "1": "1er Semestre",
            "2": "2ème Semestre",
        },
        "distribution": [
            {"start": "2025-09-01", "end": "2026-01-31"},
            {"start": "2026-02-01", "end": "2026-06-30"},
        ],
    },
    "quartier": {
        "name": "Système Quartier (États-Unis)",
        "period_model": "quartier",
        "periods_per_year": 4,
        "period_names": {
            "1": "Automne",
            "2": "Hiver",
            "3": "Printemps",
            "4": "Été",
        },
        "distribution": [
            {"start": "2025-09-01", "end": "2025-11-30"},
            {"start": "2025-12-01", "end": "2026-02-28"},
            {"start": "2026-03-01", "end": "2026-05-31"},
            {"start": "2026-06-01", "end": "2026-08-31"},
        ],
    },
    "bimestre": {
        "name": "Système Bimestre (Primaire)",
        "period_model": "bimestre",
        "periods_per_year": 5,
        "period_names": {
            "1": "Septembre-Octobre",
            "2": "Novembre-Décembre",
            "3": "Janvier-Février",
            "4": "Mars-Avril",
            "5": "Mai-Juin",
        },
        "distribution": [
            {"start": "2025-09-01", "end": "2025-10-31"},
            {"start": "2025-11-01", "end": "2025-12-31"},
            {"start": "2026-01-01", "end": "2026-02-28"},
            {"start": "2026-03-01", "end": "2026-04-30"},
            {"start": "2026-05-01", "end": "2026-06-30"},
        ],
    },
}

DEFAULT_PRESET = "trimestre"


def get_preset(period_model: str) -> dict[str, Any]:
    key = (period_model or "").strip().lower()
    try:
        return ACADEMIC_STRUCTURE_PRESETS[key]
    except KeyError:
        raise KeyError(f"Structure prédéfinie inconnue : {period_model}") from None


def _shift_year(day: date, offset: int) -> date:
    year = day.year + offset
    last_day = calendar.monthrange(day.year, day.month)[1]
    if day.day == last_day:
        return date(year, day.month, calendar.monthrange(year, day.month)[1])
    return date(year, day.month, day.day)


def distribution_for_year(
    preset: dict[str, Any], start: date, end: date
) -> list[dict[str, str]]:
    """Move a preset calendar onto the school year running from ``start`` to ``end``.

    Preset dates are written for one reference year. They are shifted so the
    first period starts in ``start.year``, then clipped to the year bounds.
    Month ends stay month ends across leap years.
    """

    distribution = preset["distribution"]
    offset = start.year - parse_date_from_iso(distribution[0]["start"]).year
    shifted: list[dict[str, str]] = []
    for order, entry in enumerate(distribution, start=1):
        period_start = max(_shift_year(parse_date_from_iso(entry["start"]), offset), start)
        period_end = min(_shift_year(parse_date_from_iso(entry["end"]), offset), end)
        if period_start > period_end:
            raise PeriodStructureError(
                f"La période {order} de « {preset['name']} » tombe hors de "
                f"l'année scolaire ({start:%d/%m/%Y} - {end:%d/%m/%Y})"
            )
        shifted.append({"start": period_start.isoformat(), "end": period_end.isoformat()})
    return shifted
