"""Academic structure CRUD endpoints."""
from __future__ import annotations

from typing import Any

from flask import request
from flask_restx import Namespace, Resource, fields

from ..extensions import db
from ..models import AcademicStructure
from ..presets import ACADEMIC_STRUCTURE_PRESETS


ns = Namespace("structures", description="How school years are cut into periods")

structure_model = ns.model(
    "AcademicStructure",
    {
        "id": fields.Integer(readonly=True),
        "name": fields.String(required=True),
        "created_by": fields.String,
        "period_model": fields.String(required=True, description="trimestre, semestre, ..."),
        "periods_per_year": fields.Integer(required=True, min=1),
        "period_names": fields.Raw(description='{"1": "1er Trimestre", ...}'),
    },
)

preset_model = ns.model(
    "AcademicStructurePreset",
    {
        "key": fields.String,
        "name": fields.String,
        "period_model": fields.String,
        "periods_per_year": fields.Integer,
        "period_names": fields.Raw,
        "distribution": fields.Raw,
    },
)


def serialize_structure(structure: AcademicStructure) -> dict[str, Any]:
    return {
        "id": structure.id,
        "name": structure.name,
        "created_by": structure.created_by,
        "period_model": structure.period_model,
        "periods_per_year": structure.periods_per_year,
        "period_names": structure.period_names,
    }


def _apply_payload(structure: AcademicStructure, payload: dict[str, Any]) -> None:
    period_names = payload.get("period_names") or {}
    if not isinstance(period_names, dict):
        ns.abort(400, "period_names doit être un objet {ordre: nom}.")
    structure.name = payload["name"].strip()
    structure.created_by = payload.get("created_by")
    structure.period_model = payload["period_model"].strip().lower()
    structure.periods_per_year = payload["periods_per_year"]
    structure.period_names = period_names


@ns.route("")
class StructureList(Resource):
    @ns.marshal_list_with(structure_model)
    def get(self) -> list[dict[str, Any]]:
        structures = AcademicStructure.query.order_by(AcademicStructure.name).all()
        return [serialize_structure(structure) for structure in structures]

    @ns.expect(structure_model, validate=True)
    @ns.marshal_with(structure_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        structure = AcademicStructure()
        _apply_payload(structure, request.json or {})
        db.session.add(structure)
        db.session.commit()
        return serialize_structure(structure), 201


@ns.route("/presets")
class StructurePresetList(Resource):
    @ns.marshal_list_with(preset_model)
    def get(self) -> list[dict[str, Any]]:
        return [{"key": key, **preset} for key, preset in ACADEMIC_STRUCTURE_PRESETS.items()]


@ns.route("/<int:structure_id>")
class StructureResource(Resource):
    @ns.marshal_with(structure_model)
    def get(self, structure_id: int) -> dict[str, Any]:
        return serialize_structure(AcademicStructure.query.get_or_404(structure_id))

    @ns.expect(structure_model, validate=True)
    @ns.marshal_with(structure_model)
    def put(self, structure_id: int) -> dict[str, Any]:
        structure = AcademicStructure.query.get_or_404(structure_id)
        _apply_payload(structure, request.json or {})
        db.session.commit()
        return serialize_structure(structure)

    def delete(self, structure_id: int) -> tuple[dict[str, str], int]:
        structure = AcademicStructure.query.get_or_404(structure_id)
        db.session.delete(structure)
        db.session.commit()
        return {"status": "deleted"}, 204
