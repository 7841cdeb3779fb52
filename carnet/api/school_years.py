"""School year endpoints, including period generation and queries."""
from __future__ import annotations

from datetime import date
from typing import Any

from flask import request
from flask_restx import Namespace, Resource, fields

from ..extensions import db
from ..models import AcademicPeriod, AcademicStructure, SchoolYear
from ..periods import PeriodCalculator, PeriodStructureError
from ..services import apply_academic_structure, apply_preset
from .common import parse_date_field, parse_optional_date


ns = Namespace("school-years", description="School years and their academic periods")

school_year_model = ns.model(
    "SchoolYear",
    {
        "id": fields.Integer(readonly=True),
        "name": fields.String(required=True),
        "created_by": fields.String,
        "start_date": fields.String(required=True, description="YYYY-MM-DD"),
        "end_date": fields.String(required=True, description="YYYY-MM-DD"),
        "is_active": fields.Boolean(default=False),
    },
)

period_model = ns.model(
    "AcademicPeriod",
    {
        "id": fields.String(readonly=True),
        "created_by": fields.String,
        "school_year_id": fields.Integer,
        "name": fields.String,
        "order": fields.Integer,
        "start_date": fields.String(description="YYYY-MM-DD"),
        "end_date": fields.String(description="YYYY-MM-DD"),
        "is_active": fields.Boolean,
    },
)

period_generation_model = ns.model(
    "PeriodGeneration",
    {
        "teacher_id": fields.String(required=True),
        "structure_id": fields.Integer(description="Structure to split the year with"),
        "preset": fields.String(description="trimestre|semestre|quartier|bimestre"),
    },
)

validation_model = ns.model(
    "StructureValidation",
    {
        "is_valid": fields.Boolean,
        "errors": fields.List(fields.String),
    },
)

stats_model = ns.model(
    "StructureStats",
    {
        "total_days": fields.Integer,
        "average_days_per_period": fields.Integer,
        "periods_info": fields.List(
            fields.Nested(
                ns.model(
                    "PeriodShare",
                    {
                        "name": fields.String,
                        "days": fields.Integer,
                        "percentage": fields.Integer,
                    },
                )
            )
        ),
    },
)


def serialize_school_year(school_year: SchoolYear) -> dict[str, Any]:
    return {
        "id": school_year.id,
        "name": school_year.name,
        "created_by": school_year.created_by,
        "start_date": school_year.start_date.isoformat(),
        "end_date": school_year.end_date.isoformat(),
        "is_active": school_year.is_active,
    }


def serialize_period(period: AcademicPeriod) -> dict[str, Any]:
    return {
        "id": period.id,
        "created_by": period.created_by,
        "school_year_id": period.school_year_id,
        "name": period.name,
        "order": period.order,
        "start_date": period.start_date.isoformat(),
        "end_date": period.end_date.isoformat(),
        "is_active": period.is_active,
    }


def _apply_payload(school_year: SchoolYear, payload: dict[str, Any]) -> None:
    start_date = parse_date_field(ns, payload.get("start_date"), "start_date")
    end_date = parse_date_field(ns, payload.get("end_date"), "end_date")
    if start_date >= end_date:
        ns.abort(400, "La date de début doit précéder la date de fin.")
    school_year.name = payload["name"].strip()
    school_year.created_by = payload.get("created_by")
    school_year.start_date = start_date
    school_year.end_date = end_date
    school_year.is_active = bool(payload.get("is_active", False))


def _structure_from_args() -> AcademicStructure:
    structure_id = request.args.get("structure_id", type=int)
    if structure_id is None:
        ns.abort(400, "structure_id est obligatoire.")
    return AcademicStructure.query.get_or_404(structure_id)


@ns.route("")
class SchoolYearList(Resource):
    @ns.marshal_list_with(school_year_model)
    def get(self) -> list[dict[str, Any]]:
        school_years = SchoolYear.query.order_by(SchoolYear.start_date.desc()).all()
        return [serialize_school_year(school_year) for school_year in school_years]

    @ns.expect(school_year_model, validate=True)
    @ns.marshal_with(school_year_model, code=201)
    def post(self) -> tuple[dict[str, Any], int]:
        school_year = SchoolYear()
        _apply_payload(school_year, request.json or {})
        db.session.add(school_year)
        db.session.commit()
        return serialize_school_year(school_year), 201


@ns.route("/<int:school_year_id>")
class SchoolYearResource(Resource):
    @ns.marshal_with(school_year_model)
    def get(self, school_year_id: int) -> dict[str, Any]:
        return serialize_school_year(SchoolYear.query.get_or_404(school_year_id))

    @ns.expect(school_year_model, validate=True)
    @ns.marshal_with(school_year_model)
    def put(self, school_year_id: int) -> dict[str, Any]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        _apply_payload(school_year, request.json or {})
        db.session.commit()
        return serialize_school_year(school_year)

    def delete(self, school_year_id: int) -> tuple[dict[str, str], int]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        db.session.delete(school_year)
        db.session.commit()
        return {"status": "deleted"}, 204


@ns.route("/<int:school_year_id>/validation")
@ns.param("structure_id", "Academic structure to check")
class SchoolYearValidation(Resource):
    @ns.marshal_with(validation_model)
    def get(self, school_year_id: int) -> dict[str, Any]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        structure = _structure_from_args()
        report = PeriodCalculator.validate_structure_for_school_year(structure, school_year)
        return {"is_valid": report.is_valid, "errors": report.errors}


@ns.route("/<int:school_year_id>/stats")
@ns.param("structure_id", "Academic structure to apply")
class SchoolYearStats(Resource):
    @ns.marshal_with(stats_model)
    def get(self, school_year_id: int) -> dict[str, Any]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        structure = _structure_from_args()
        try:
            stats = PeriodCalculator.calculate_structure_stats(structure, school_year)
        except PeriodStructureError as exc:
            ns.abort(400, str(exc))
        return {
            "total_days": stats.total_days,
            "average_days_per_period": stats.average_days_per_period,
            "periods_info": [
                {"name": share.name, "days": share.days, "percentage": share.percentage}
                for share in stats.periods_info
            ],
        }


@ns.route("/<int:school_year_id>/periods")
class SchoolYearPeriods(Resource):
    @ns.marshal_list_with(period_model)
    def get(self, school_year_id: int) -> list[dict[str, Any]]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        return [serialize_period(period) for period in school_year.periods]

    @ns.expect(period_generation_model, validate=True)
    @ns.marshal_list_with(period_model, code=201)
    def post(self, school_year_id: int) -> tuple[list[dict[str, Any]], int]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        payload = request.json or {}
        teacher_id = payload["teacher_id"]
        if payload.get("preset"):
            try:
                periods = apply_preset(db.session, school_year, payload["preset"], teacher_id)
            except KeyError as exc:
                ns.abort(400, exc.args[0])
            except PeriodStructureError as exc:
                ns.abort(400, str(exc), errors=exc.errors)
        elif payload.get("structure_id") is not None:
            structure = AcademicStructure.query.get_or_404(payload["structure_id"])
            try:
                periods = apply_academic_structure(
                    db.session, school_year, structure, teacher_id
                )
            except PeriodStructureError as exc:
                ns.abort(400, str(exc), errors=exc.errors)
        else:
            ns.abort(400, "structure_id ou preset est obligatoire.")
        return [serialize_period(period) for period in periods], 201


@ns.route("/<int:school_year_id>/periods/current")
@ns.param("which", "active|next|previous")
@ns.param("date", "Reference date (YYYY-MM-DD), today by default")
class SchoolYearCurrentPeriod(Resource):
    LOOKUPS = {
        "active": PeriodCalculator.find_active_period,
        "next": PeriodCalculator.get_next_period,
        "previous": PeriodCalculator.get_previous_period,
    }

    @ns.marshal_with(period_model)
    def get(self, school_year_id: int) -> dict[str, Any]:
        school_year = SchoolYear.query.get_or_404(school_year_id)
        which = request.args.get("which", "active")
        lookup = self.LOOKUPS.get(which)
        if lookup is None:
            ns.abort(400, "which doit valoir active, next ou previous.")
        reference = parse_optional_date(ns, request.args.get("date"), "date") or date.today()
        period = lookup(school_year.periods, reference)
        if period is None:
            ns.abort(404, "Aucune période correspondante.")
        return serialize_period(period)
