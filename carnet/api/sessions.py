"""Course session generation and listing endpoints."""
from __future__ import annotations

from datetime import date
from typing import Any

from flask import request
from flask_restx import Namespace, Resource, fields

from ..dates import get_week_start
from ..extensions import db
from ..models import CourseSession
from ..services import materialise_sessions, preview_range, preview_week, resolve_session
from ..sessions import SessionGenerationError
from .common import iso_or_none, parse_date_field, parse_optional_date


ns = Namespace("sessions", description="Dated course sessions")

session_model = ns.model(
    "CourseSession",
    {
        "id": fields.String,
        "created_by": fields.String,
        "class_id": fields.String,
        "subject_id": fields.String,
        "time_slot_id": fields.Integer,
        "session_date": fields.String(description="YYYY-MM-DD"),
        "room": fields.String,
        "status": fields.String,
        "objectives": fields.String,
        "content": fields.String,
        "homework_assigned": fields.String,
        "notes": fields.String,
        "attendance_taken": fields.Boolean,
        "is_moved": fields.Boolean,
        "is_makeup": fields.Boolean,
        "template_id": fields.Integer,
        "exception_id": fields.String,
    },
)

generation_model = ns.model(
    "SessionGeneration",
    {
        "teacher_id": fields.String(required=True),
        "start_date": fields.String(required=True, description="YYYY-MM-DD"),
        "end_date": fields.String(required=True, description="YYYY-MM-DD"),
    },
)

report_model = ns.model(
    "SessionGenerationReport",
    {
        "successful": fields.Integer,
        "skipped": fields.Integer,
        "failed": fields.Integer,
        "updated": fields.Integer(description="Stored rows cancelled or replaced"),
        "total": fields.Integer,
        "errors": fields.List(fields.String),
    },
)

preview_model = ns.model(
    "SessionPreview",
    {
        "count": fields.Integer,
        "sessions": fields.List(fields.Nested(session_model)),
    },
)


def serialize_session(session: Any) -> dict[str, Any]:
    """Serialise a stored ``CourseSession`` or a freshly generated one."""
    return {
        "id": session.id,
        "created_by": session.created_by,
        "class_id": session.class_id,
        "subject_id": session.subject_id,
        "time_slot_id": session.time_slot_id,
        "session_date": iso_or_none(session.session_date),
        "room": session.room,
        "status": session.status,
        "objectives": session.objectives,
        "content": session.content,
        "homework_assigned": session.homework_assigned,
        "notes": session.notes,
        "attendance_taken": session.attendance_taken,
        "is_moved": session.is_moved,
        "is_makeup": session.is_makeup,
        "template_id": session.template_id,
        "exception_id": session.exception_id,
    }


def _teacher_id() -> str:
    teacher_id = (request.args.get("teacher_id") or "").strip()
    if not teacher_id:
        ns.abort(400, "teacher_id est obligatoire.")
    return teacher_id


@ns.route("")
@ns.param("teacher_id", "Owner of the sessions")
@ns.param("start", "First date (YYYY-MM-DD)")
@ns.param("end", "Last date (YYYY-MM-DD)")
class SessionList(Resource):
    @ns.marshal_list_with(session_model)
    def get(self) -> list[dict[str, Any]]:
        query = CourseSession.query
        teacher_id = request.args.get("teacher_id")
        if teacher_id:
            query = query.filter_by(created_by=teacher_id)
        start = parse_optional_date(ns, request.args.get("start"), "start")
        end = parse_optional_date(ns, request.args.get("end"), "end")
        if start is not None:
            query = query.filter(CourseSession.session_date >= start)
        if end is not None:
            query = query.filter(CourseSession.session_date <= end)
        sessions = query.order_by(CourseSession.session_date, CourseSession.time_slot_id).all()
        return [serialize_session(session) for session in sessions]


@ns.route("/week")
@ns.param("teacher_id", "Owner of the weekly templates")
@ns.param("week_start", "Any day of the week (YYYY-MM-DD), current week by default")
class WeekPreview(Resource):
    @ns.marshal_list_with(session_model)
    def get(self) -> list[dict[str, Any]]:
        teacher_id = _teacher_id()
        day = parse_optional_date(ns, request.args.get("week_start"), "week_start")
        week_start = get_week_start(day or date.today())
        try:
            sessions = preview_week(db.session, teacher_id, week_start)
        except SessionGenerationError as exc:
            ns.abort(400, str(exc))
        return [serialize_session(session) for session in sessions]


@ns.route("/preview")
@ns.param("teacher_id", "Owner of the weekly templates")
@ns.param("start", "First date (YYYY-MM-DD)")
@ns.param("end", "Last date (YYYY-MM-DD)")
class RangePreview(Resource):
    @ns.marshal_with(preview_model)
    def get(self) -> dict[str, Any]:
        teacher_id = _teacher_id()
        start = parse_date_field(ns, request.args.get("start"), "start")
        end = parse_date_field(ns, request.args.get("end"), "end")
        if start > end:
            ns.abort(400, "La date de début doit précéder la date de fin.")
        try:
            sessions = preview_range(db.session, teacher_id, start, end)
        except SessionGenerationError as exc:
            ns.abort(400, str(exc))
        return {
            "count": len(sessions),
            "sessions": [serialize_session(session) for session in sessions],
        }


@ns.route("/generate")
class SessionGenerate(Resource):
    @ns.expect(generation_model, validate=True)
    @ns.marshal_with(report_model)
    def post(self) -> dict[str, Any]:
        payload = request.json or {}
        start = parse_date_field(ns, payload.get("start_date"), "start_date")
        end = parse_date_field(ns, payload.get("end_date"), "end_date")
        try:
            report = materialise_sessions(db.session, payload["teacher_id"], start, end)
        except ValueError as exc:
            ns.abort(400, str(exc))
        return report.as_dict()


@ns.route("/<string:session_id>")
class SessionResource(Resource):
    @ns.marshal_with(session_model)
    def get(self, session_id: str) -> dict[str, Any]:
        """Stored session, or the occurrence its id names when not stored yet."""
        session = resolve_session(db.session, session_id)
        if session is None:
            ns.abort(404, f"Séance introuvable : {session_id}")
        return serialize_session(session)
