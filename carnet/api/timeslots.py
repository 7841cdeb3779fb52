"""Time slot endpoints."""
from __future__ import annotations

from datetime import datetime, time
from typing import Any

from flask import request
from flask_restx import Namespace, Resource, fields
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import TimeSlot


ns = Namespace("timeslots", description="Daily teaching slots")

timeslot_model = ns.model(
    "TimeSlot",
    {
        "id": fields.Integer(readonly=True),
        "name": fields.String(description="Defaults to 8h30-9h25 style label"),
        "created_by": fields.String,
        "start_time": fields.String(required=True, description="HH:MM"),
        "end_time": fields.String(required=True, description="HH:MM"),
        "duration_minutes": fields.Integer(readonly=True),
        "display_order": fields.Integer(default=0),
        "is_break": fields.Boolean(default=False),
    },
)


def serialize_timeslot(slot: TimeSlot) -> dict[str, Any]:
    return {
        "id": slot.id,
        "name": slot.name,
        "created_by": slot.created_by,
        "start_time": slot.start_time.strftime("%H:%M"),
        "end_time": slot.end_time.strftime("%H:%M"),
        "duration_minutes": slot.duration_minutes,
        "display_order": slot.display_order,
        "is_break": slot.is_break,
    }


def _parse_time(value: str) -> time:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        ns.abort(400, f"Heure invalide : {value} (HH:MM attendu).")


def _default_name(start: time, end: time) -> str:
    return f"{start.hour}h{start.minute:02d}-{end.hour}h{end.minute:02d}"


@ns.route("")
class TimeSlotList(Resource):
    @ns.marshal_list_with(timeslot_model)
    def get(self) -> list[dict[str, Any]]:
        slots = TimeSlot.query.order_by(TimeSlot.display_order, TimeSlot.start_time).all()
        return [serialize_timeslot(slot) for slot in slots]

    @ns.expect(timeslot_model, validate=True)
    @ns.marshal_with(timeslot_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        payload = request.json or {}
        start_time = _parse_time(payload["start_time"])
        end_time = _parse_time(payload["end_time"])
        if start_time >= end_time:
            ns.abort(400, "L'heure de début doit précéder l'heure de fin.")
        slot = TimeSlot(
            name=(payload.get("name") or "").strip() or _default_name(start_time, end_time),
            created_by=payload.get("created_by"),
            start_time=start_time,
            end_time=end_time,
            display_order=payload.get("display_order", 0),
            is_break=bool(payload.get("is_break", False)),
        )
        db.session.add(slot)
        db.session.commit()
        return serialize_timeslot(slot), 201


@ns.route("/<int:slot_id>")
class TimeSlotResource(Resource):
    @ns.marshal_with(timeslot_model)
    def get(self, slot_id: int) -> dict[str, Any]:
        return serialize_timeslot(TimeSlot.query.get_or_404(slot_id))

    def delete(self, slot_id: int) -> tuple[dict[str, str], int]:
        slot = TimeSlot.query.get_or_404(slot_id)
        db.session.delete(slot)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            ns.abort(409, "Ce créneau est encore utilisé par des séances ou des templates.")
        return {"status": "deleted"}, 204
