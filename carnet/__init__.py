from datetime import timedelta

import click
from flask import Flask
from flask.cli import with_appcontext

from config import Config, _normalise_prefix

from .extensions import db, migrate


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_class)

    url_prefix = _normalise_prefix(app.config.get("URL_PREFIX", ""))
    app.config["URL_PREFIX"] = url_prefix

    db.init_app(app)
    migrate.init_app(app, db)

    from . import models  # noqa: F401  # Ensure models registered for migrations

    with app.app_context():
        db.create_all()

    from .api import create_api

    api = create_api(app.config)
    api.init_app(app)

    _register_commands(app)
    return app


def _register_commands(app: Flask) -> None:
    @app.cli.command("seed")
    @with_appcontext
    def seed() -> None:
        """Seed initial data for development."""
        from .seed import seed_data

        seed_data()
        click.echo("Base de données initialisée.")

    @app.cli.command("generate-periods")
    @click.argument("school_year_id", type=int)
    @click.argument("structure_id", type=int)
    @click.argument("teacher_id")
    @with_appcontext
    def generate_periods(school_year_id: int, structure_id: int, teacher_id: str) -> None:
        """Cut a school year into periods using an academic structure."""
        from .models import AcademicStructure, SchoolYear
        from .periods import PeriodStructureError
        from .services import apply_academic_structure

        school_year = db.session.get(SchoolYear, school_year_id)
        structure = db.session.get(AcademicStructure, structure_id)
        if school_year is None or structure is None:
            raise click.ClickException("Année scolaire ou structure introuvable.")
        try:
            periods = apply_academic_structure(db.session, school_year, structure, teacher_id)
        except PeriodStructureError as exc:
            raise click.ClickException("\n".join(exc.errors)) from exc
        for period in periods:
            click.echo(
                f"{period.order}. {period.name} : "
                f"{period.start_date:%d/%m/%Y} → {period.end_date:%d/%m/%Y}"
            )

    @app.cli.command("generate-sessions")
    @click.argument("teacher_id")
    @click.argument("start", type=click.DateTime(formats=["%Y-%m-%d"]))
    @click.argument("end", type=click.DateTime(formats=["%Y-%m-%d"]), required=False)
    @with_appcontext
    def generate_sessions(teacher_id: str, start, end) -> None:
        """Store the sessions produced by a teacher's weekly templates."""
        from .services import materialise_sessions

        start_date = start.date()
        if end is None:
            weeks = app.config["SESSION_GENERATION_HORIZON_WEEKS"]
            end_date = start_date + timedelta(weeks=weeks) - timedelta(days=1)
        else:
            end_date = end.date()
        report = materialise_sessions(db.session, teacher_id, start_date, end_date)
        click.echo(
            f"{report.successful} séance(s) créée(s), {report.skipped} déjà présente(s), "
            f"{report.updated} mise(s) à jour, {report.failed} en échec."
        )
        for message in report.errors:
            click.echo(f"  - {message}")
