"""Liveness probe used by the deployment and the dashboard banner."""
from __future__ import annotations

from flask import current_app
from flask_restx import Namespace, Resource, fields
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db


ns = Namespace("health", description="Carnet availability")

health_model = ns.model(
    "Health",
    {
        "status": fields.String(description="Always ok when the app answers"),
        "database": fields.String(enum=["ok", "error"]),
    },
)


def _database_state() -> str:
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Base de données injoignable : %s", exc)
        return "error"
    return "ok"


@ns.route("")
class HealthResource(Resource):
    @ns.marshal_with(health_model)
    def get(self) -> dict[str, str]:
        return {"status": "ok", "database": _database_state()}
