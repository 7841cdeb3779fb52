import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _normalise_prefix(raw_prefix: str) -> str:
    raw_prefix = raw_prefix.strip()
    if not raw_prefix or raw_prefix == "/":
        return ""
    if not raw_prefix.startswith("/"):
        raw_prefix = f"/{raw_prefix}"
    return raw_prefix.rstrip("/")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    URL_PREFIX = _normalise_prefix(os.environ.get("FLASK_URL_PREFIX", ""))

    _db_user = os.environ.get("DATABASE_USER", "carnet")
    _db_password = os.environ.get("DATABASE_PASSWORD", "carnet")
    _db_host = os.environ.get("DATABASE_HOST", "localhost")
    _db_port = os.environ.get("DATABASE_PORT", "3306")
    _db_name = os.environ.get("DATABASE_NAME", "carnet")

    _default_uri = (
        f"mysql+pymysql://{_db_user}:{_db_password}@{_db_host}:{_db_port}/{_db_name}"
    )

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_uri)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = os.environ.get("DB_ECHO", "false").lower() == "true"

    API_TITLE = os.environ.get("API_TITLE", "Carnet API")
    API_VERSION = os.environ.get("API_VERSION", "0.1.0")

    # Default span used by `flask generate-sessions` when no end date is given.
    SESSION_GENERATION_HORIZON_WEEKS = int(
        os.environ.get("SESSION_GENERATION_HORIZON_WEEKS", "6")
    )


class TestConfig(Config):
    TESTING = True
    URL_PREFIX = ""
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
