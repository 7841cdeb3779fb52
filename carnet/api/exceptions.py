"""Endpoints recording one-off changes to weekly templates."""
from __future__ import annotations

from typing import Any

from flask import request
from flask_restx import Namespace, Resource, fields

from ..extensions import db
from ..models import SessionException, TimeSlot, WeeklyTemplate
from ..services import record_exception
from ..sessions import SessionExceptionUtils
from .common import iso_or_none, parse_date_field, parse_optional_date


ns = Namespace("exceptions", description="Cancellations, moves and additions")

exception_model = ns.model(
    "SessionException",
    {
        "id": fields.String(readonly=True),
        "created_by": fields.String,
        "template_id": fields.Integer,
        "exception_date": fields.String(description="YYYY-MM-DD"),
        "type": fields.String(enum=["cancelled", "moved", "added"]),
        "new_time_slot_id": fields.Integer,
        "new_room": fields.String,
        "reason": fields.String,
        "session_data": fields.Raw,
    },
)

cancellation_model = ns.model(
    "Cancellation",
    {
        "template_id": fields.Integer(required=True),
        "date": fields.String(required=True, description="YYYY-MM-DD"),
        "reason": fields.String(required=True),
    },
)

move_model = ns.model(
    "Move",
    {
        "template_id": fields.Integer(required=True),
        "date": fields.String(required=True, description="YYYY-MM-DD"),
        "new_time_slot_id": fields.Integer(required=True),
        "new_room": fields.String,
        "reason": fields.String,
    },
)

addition_model = ns.model(
    "Addition",
    {
        "date": fields.String(required=True, description="YYYY-MM-DD"),
        "time_slot_id": fields.Integer(required=True),
        "room": fields.String,
        "reason": fields.String(required=True),
        "template_id": fields.Integer(description="Template the addition replaces, if any"),
        "created_by": fields.String(
            description="Owning teacher, defaults to the template's teacher"
        ),
        "session_data": fields.Raw(description="class_id, subject_id, created_by, ..."),
    },
)


def serialize_exception(exception: SessionException) -> dict[str, Any]:
    return {
        "id": exception.id,
        "created_by": exception.created_by,
        "template_id": exception.template_id,
        "exception_date": iso_or_none(exception.exception_date),
        "type": exception.type,
        "new_time_slot_id": exception.new_time_slot_id,
        "new_room": exception.new_room,
        "reason": exception.reason,
        "session_data": exception.session_data or None,
    }


def _template_for_date(payload: dict[str, Any]):
    template = WeeklyTemplate.query.get_or_404(payload["template_id"])
    day = parse_date_field(ns, payload.get("date"), "date")
    if day.isoweekday() != template.day_of_week:
        ns.abort(
            400,
            f"Le {day:%d/%m/%Y} ne correspond pas au jour du template ({template.day_of_week}).",
        )
    return template, day


@ns.route("")
@ns.param("template_id", "Filter on a template")
@ns.param("start", "First date (YYYY-MM-DD)")
@ns.param("end", "Last date (YYYY-MM-DD)")
class ExceptionList(Resource):
    @ns.marshal_list_with(exception_model)
    def get(self) -> list[dict[str, Any]]:
        query = SessionException.query
        template_id = request.args.get("template_id", type=int)
        if template_id is not None:
            query = query.filter_by(template_id=template_id)
        start = parse_optional_date(ns, request.args.get("start"), "start")
        end = parse_optional_date(ns, request.args.get("end"), "end")
        if start is not None:
            query = query.filter(SessionException.exception_date >= start)
        if end is not None:
            query = query.filter(SessionException.exception_date <= end)
        exceptions = query.order_by(SessionException.exception_date).all()
        return [serialize_exception(exception) for exception in exceptions]


@ns.route("/cancellations")
class CancellationList(Resource):
    @ns.expect(cancellation_model, validate=True)
    @ns.marshal_with(exception_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        payload = request.json or {}
        template, day = _template_for_date(payload)
        data = SessionExceptionUtils.create_cancellation(template.id, day, payload["reason"])
        data.created_by = template.teacher_id
        return serialize_exception(record_exception(db.session, data)), 201


@ns.route("/moves")
class MoveList(Resource):
    @ns.expect(move_model, validate=True)
    @ns.marshal_with(exception_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        payload = request.json or {}
        template, day = _template_for_date(payload)
        TimeSlot.query.get_or_404(payload["new_time_slot_id"])
        data = SessionExceptionUtils.create_move(
            template.id,
            day,
            payload["new_time_slot_id"],
            payload.get("new_room"),
            payload.get("reason"),
        )
        data.created_by = template.teacher_id
        return serialize_exception(record_exception(db.session, data)), 201


@ns.route("/additions")
class AdditionList(Resource):
    @ns.expect(addition_model, validate=True)
    @ns.marshal_with(exception_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        payload = request.json or {}
        day = parse_date_field(ns, payload.get("date"), "date")
        TimeSlot.query.get_or_404(payload["time_slot_id"])
        session_data = payload.get("session_data")
        if session_data is not None and not isinstance(session_data, dict):
            ns.abort(400, "session_data doit être un objet.")
        owner = (payload.get("created_by") or "").strip() or None
        template_id = payload.get("template_id")
        if template_id is not None:
            owner = owner or WeeklyTemplate.query.get_or_404(template_id).teacher_id
        owner = owner or (session_data or {}).get("created_by")
        if not owner:
            ns.abort(400, "created_by est obligatoire pour un ajout sans template.")
        data = SessionExceptionUtils.create_addition(
            day,
            payload["time_slot_id"],
            payload.get("room"),
            payload["reason"],
            session_data=session_data,
            template_id=template_id,
            created_by=owner,
        )
        return serialize_exception(record_exception(db.session, data)), 201


@ns.route("/<string:exception_id>")
class ExceptionResource(Resource):
    @ns.marshal_with(exception_model)
    def get(self, exception_id: str) -> dict[str, Any]:
        return serialize_exception(SessionException.query.get_or_404(exception_id))

    def delete(self, exception_id: str) -> tuple[dict[str, str], int]:
        exception = SessionException.query.get_or_404(exception_id)
        db.session.delete(exception)
        db.session.commit()
        return {"status": "deleted"}, 204
