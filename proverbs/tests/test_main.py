from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from proverbs import db, run
from proverbs.core.config import Settings
from proverbs.main import create_app
from proverbs.repositories import SQLRatingsRepository
from proverbs.utils.auth import create_access_token


def test_sql_backend_end_to_end(tmp_path):
    settings = Settings(RATINGS_BACKEND="sql", DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")
    app = create_app(settings)
    token = create_access_token({"authenticated": True}, timedelta(minutes=5))
    headers = {"Authorization": f"Bearer {token}"}

    assert isinstance(app.state.ratings_repository, SQLRatingsRepository)
    with TestClient(app) as client:
        client.post("/api/ratings", json={"item_id": "p1", "session_id": "s1", "value": 4}, headers=headers)
        response = client.post("/api/ratings", json={"item_id": "p1", "session_id": "s2", "value": 2}, headers=headers)

        assert response.status_code == 200
        assert response.json()["stats"] == {"item_id": "p1", "average_rating": 3.0, "total_votes": 2}

    assert db.engine is None

def test_mongo_backend_requires_uri():
    with pytest.raises(RuntimeError):
        create_app(Settings(RATINGS_BACKEND="mongo", MONGO_URI=None))

def test_run_serves_the_configured_app(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "engine", db.engine)
    monkeypatch.setenv("RATINGS_BACKEND", "sql")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'run.db'}")
    monkeypatch.setenv("ACCESS_PIN", "2468")
    monkeypatch.setenv("PORT", "9123")

    with patch.object(run.uvicorn, "run") as uvicorn_run:
        run.main()

    app = uvicorn_run.call_args.args[0]
    assert uvicorn_run.call_args.kwargs["port"] == 9123
    assert app.state.settings.ACCESS_PIN == "2468"
    assert isinstance(app.state.ratings_repository, SQLRatingsRepository)
