"""REST API definition using Flask-RESTX."""
from __future__ import annotations

from typing import Mapping

from flask_restx import Api

from .exceptions import ns as exceptions_ns
from .health import ns as health_ns
from .school_years import ns as school_years_ns
from .sessions import ns as sessions_ns
from .structures import ns as structures_ns
from .templates import ns as templates_ns
from .timeslots import ns as timeslots_ns


def register_namespaces(api: Api) -> None:
    """Register all API namespaces."""
    api.add_namespace(health_ns, path="/health")
    api.add_namespace(school_years_ns, path="/school-years")
    api.add_namespace(structures_ns, path="/structures")
    api.add_namespace(timeslots_ns, path="/timeslots")
    api.add_namespace(templates_ns, path="/templates")
    api.add_namespace(exceptions_ns, path="/exceptions")
    api.add_namespace(sessions_ns, path="/sessions")


def create_api(config: Mapping[str, object]) -> Api:
    prefix = f"{config.get('URL_PREFIX', '')}/api"
    api = Api(
        version=str(config.get("API_VERSION", "0.1.0")),
        title=str(config.get("API_TITLE", "Carnet API")),
        doc=f"{prefix}/docs",
        prefix=prefix,
    )
    register_namespaces(api)
    return api
