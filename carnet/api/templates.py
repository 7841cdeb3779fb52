"""Weekly template CRUD endpoints."""
from __future__ import annotations

from typing import Any

from flask import request
from flask_restx import Namespace, Resource, fields
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import TimeSlot, WeeklyTemplate


ns = Namespace("templates", description="Recurring weekly course slots")

template_model = ns.model(
    "WeeklyTemplate",
    {
        "id": fields.Integer(readonly=True),
        "teacher_id": fields.String(required=True),
        "class_id": fields.String(required=True),
        "subject_id": fields.String(required=True),
        "time_slot_id": fields.Integer(required=True),
        "day_of_week": fields.Integer(
            required=True, min=1, max=7, description="1=Monday, 7=Sunday"
        ),
        "room": fields.String,
        "is_active": fields.Boolean(default=True),
    },
)


def serialize_template(template: WeeklyTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "teacher_id": template.teacher_id,
        "class_id": template.class_id,
        "subject_id": template.subject_id,
        "time_slot_id": template.time_slot_id,
        "day_of_week": template.day_of_week,
        "room": template.room,
        "is_active": template.is_active,
    }


def _apply_payload(template: WeeklyTemplate, payload: dict[str, Any]) -> None:
    TimeSlot.query.get_or_404(payload["time_slot_id"])
    for key in ("teacher_id", "class_id", "subject_id"):
        value = (payload.get(key) or "").strip()
        if not value:
            ns.abort(400, f"{key} est obligatoire.")
        setattr(template, key, value)
    template.time_slot_id = payload["time_slot_id"]
    template.day_of_week = payload["day_of_week"]
    template.room = (payload.get("room") or "").strip() or None
    template.is_active = bool(payload.get("is_active", True))


def _commit_or_conflict() -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        ns.abort(409, "Un template occupe déjà ce créneau pour cet enseignant.")


@ns.route("")
@ns.param("teacher_id", "Only return the templates of this teacher")
class TemplateList(Resource):
    @ns.marshal_list_with(template_model)
    def get(self) -> list[dict[str, Any]]:
        query = WeeklyTemplate.query
        teacher_id = request.args.get("teacher_id")
        if teacher_id:
            query = query.filter_by(teacher_id=teacher_id)
        templates = query.order_by(WeeklyTemplate.day_of_week, WeeklyTemplate.time_slot_id).all()
        return [serialize_template(template) for template in templates]

    @ns.expect(template_model, validate=True)
    @ns.marshal_with(template_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        template = WeeklyTemplate()
        _apply_payload(template, request.json or {})
        db.session.add(template)
        _commit_or_conflict()
        return serialize_template(template), 201


@ns.route("/<int:template_id>")
class TemplateResource(Resource):
    @ns.marshal_with(template_model)
    def get(self, template_id: int) -> dict[str, Any]:
        return serialize_template(WeeklyTemplate.query.get_or_404(template_id))

    @ns.expect(template_model, validate=True)
    @ns.marshal_with(template_model)
    def put(self, template_id: int) -> dict[str, Any]:
        template = WeeklyTemplate.query.get_or_404(template_id)
        _apply_payload(template, request.json or {})
        _commit_or_conflict()
        return serialize_template(template)

    def delete(self, template_id: int) -> tuple[dict[str, str], int]:
        template = WeeklyTemplate.query.get_or_404(template_id)
        db.session.delete(template)
        db.session.commit()
        return {"status": "deleted"}, 204
