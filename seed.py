from __future__ import annotations

from carnet import create_app, db
from carnet.seed import seed_data


def run_seed() -> None:
    app = create_app()
    with app.app_context():
        db.create_all()
        seed_data()
        print("Base de données initialisée.")


if __name__ == "__main__":
    run_seed()
