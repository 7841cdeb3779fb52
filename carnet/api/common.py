"""Request parsing helpers shared by the API namespaces."""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from flask_restx import Namespace

from ..dates import parse_date_from_iso


def parse_date_field(ns: Namespace, value: Any, field_name: str) -> date:
    if not value:
        ns.abort(400, f"{field_name} est obligatoire (YYYY-MM-DD).")
    try:
        return parse_date_from_iso(value)
    except (TypeError, ValueError):
        ns.abort(400, f"{field_name} : date invalide ({value}).")


def parse_optional_date(ns: Namespace, value: Any, field_name: str) -> Optional[date]:
    if not value:
        return None
    return parse_date_field(ns, value, field_name)


def iso_or_none(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
