"""Session server tests with a mocked DB layer.

Mock strategy:
  - MockSessionRow has the same attributes as QuestionnaireSession but no
    SQLAlchemy dependency.  The service reads/writes attributes directly.
  - MockSessionRepository / MockProfileRepository implement every async
    method the service calls, mutating rows in-place like the real ones.
  - AsyncMock stands in for AsyncSession (db).

Route tests run the real FastAPI app through ``TestClient`` with
``get_db`` and ``get_service`` overridden, so no database is needed.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from onboarding_db import engine
from onboarding_db.config import load_database_settings
from onboarding_db.models.enums import SessionStatus
from onboarding_db.repository import SessionRepository
from onboarding_server import cleanup
from onboarding_server.app import create_app
from onboarding_server.config import ServerSettings, load_settings
from onboarding_server.dependencies import get_db, get_service
from onboarding_server.payload import normalize_payload, prepare_for_attach
from onboarding_server.service import SessionService

from conftest import COMPLETE_ANSWERS


# =====================================================================
# Mock infrastructure
# =====================================================================


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MockSessionRow:
    """In-memory stand-in for the QuestionnaireSession ORM model."""

    session_uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    payload: dict = field(default_factory=dict)
    completed: bool = False
    user_id: str | None = None
    status: SessionStatus = SessionStatus.ANONYMOUS
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    attached_at: datetime | None = None


@dataclass
class MockProfileRow:
    user_id: str
    data: dict = field(default_factory=dict)
    questionnaire_completed: bool = False


class MockSessionRepository:
    """In-memory implementation of the SessionRepository interface."""

    def __init__(self):
        self.rows: dict[str, MockSessionRow] = {}

    def add(self, **kwargs) -> MockSessionRow:
        row = MockSessionRow(**kwargs)
        self.rows[row.session_uuid] = row
        return row

    async def create(self, db, *, payload=None, session_uuid=None):
        kwargs: dict[str, Any] = {"payload": dict(payload or {})}
        if session_uuid:
            kwargs["session_uuid"] = session_uuid
        return self.add(**kwargs)

    async def get_by_uuid(self, db, session_uuid):
        return self.rows.get(session_uuid)

    async def replace_payload(self, db, session, payload, *, completed=None):
        session.payload = dict(payload)
        if completed is not None:
            session.completed = completed
        session.updated_at = _now()
        return session

    async def attach(self, db, session, user_id):
        session.user_id = user_id
        session.status = SessionStatus.ATTACHED
        session.attached_at = _now()
        return session


class MockProfileRepository:
    """In-memory implementation of the ProfileRepository interface."""

    def __init__(self):
        self.rows: dict[str, MockProfileRow] = {}

    async def get_by_user(self, db, user_id):
        return self.rows.get(user_id)

    async def upsert(self, db, user_id, data, *, questionnaire_completed):
        row = self.rows.setdefault(user_id, MockProfileRow(user_id=user_id))
        row.data = dict(data)
        row.questionnaire_completed = questionnaire_completed
        return row


@pytest.fixture
def sessions():
    return MockSessionRepository()


@pytest.fixture
def profiles():
    return MockProfileRepository()


@pytest.fixture
def service(graph, sessions, profiles):
    return SessionService(graph, sessions=sessions, profiles=profiles)


@pytest.fixture
def db():
    return AsyncMock()


# =====================================================================
# Payload normalisation
# =====================================================================


class TestPayload:
    def test_height_in_metres_converted(self):
        assert normalize_payload({"height_cm": 1.7})["height_cm"] == 170

    def test_height_in_centimetres_rounded(self):
        assert normalize_payload({"height_cm": "168.6"})["height_cm"] == 169

    def test_integer_metrics_truncated(self):
        result = normalize_payload({"weight_kg": "60.5", "current_weekly_volume_km": 12.9})
        assert result["weight_kg"] == 60
        assert result["current_weekly_volume_km"] == 12

    def test_non_numeric_left_alone(self):
        payload = {"weight_kg": "beaucoup", "height_cm": True, "gender": "male"}
        assert normalize_payload(payload) == payload

    def test_input_not_mutated(self):
        payload = {"height_cm": 1.7}
        normalize_payload(payload)
        assert payload == {"height_cm": 1.7}

    def test_prepare_drops_email(self):
        prepared = prepare_for_attach({"email": "a@b.c", "height_cm": 1.68})
        assert prepared == {"height_cm": 168}


# =====================================================================
# Service
# =====================================================================


class TestSessionService:
    @pytest.mark.asyncio
    async def test_create_prunes_hidden_answers(self, service, db):
        view = await service.create_session(
            db, {"primary_goal": "entretenir", "race_distance": "10km"},
        )
        assert view.payload == {"primary_goal": "entretenir"}
        assert not view.completed

    @pytest.mark.asyncio
    async def test_get_unknown_session(self, service, db):
        with pytest.raises(ValueError, match="not found"):
            await service.get_session(db, "missing")

    @pytest.mark.asyncio
    async def test_update_replaces_payload(self, service, sessions, db):
        row = sessions.add(payload={"email": "a@b.c", "first_name": "Martin"})
        view = await service.update_session(db, row.session_uuid, {"email": "x@y.z"}, completed=True)
        assert view.payload == {"email": "x@y.z"}
        assert view.completed

    @pytest.mark.asyncio
    async def test_update_keeps_completed_flag_when_omitted(self, service, sessions, db):
        row = sessions.add(completed=True)
        view = await service.update_session(db, row.session_uuid, {"email": "a@b.c"})
        assert view.completed

    @pytest.mark.asyncio
    async def test_update_attached_session_rejected(self, service, sessions, db):
        row = sessions.add(user_id="user1", status=SessionStatus.ATTACHED)
        with pytest.raises(ValueError, match="already attached"):
            await service.update_session(db, row.session_uuid, {})

    @pytest.mark.asyncio
    async def test_attach_copies_normalised_answers(self, service, sessions, profiles, db):
        payload = dict(COMPLETE_ANSWERS, height_cm=1.68, weight_kg="60.4")
        row = sessions.add(payload=payload)

        profile = await service.attach_session(db, row.session_uuid, "user1")

        assert profile.questionnaire_completed
        assert profile.data["height_cm"] == 168
        assert profile.data["weight_kg"] == 60
        assert "email" not in profile.data
        assert row.user_id == "user1"
        assert row.status == SessionStatus.ATTACHED
        assert row.completed
        assert profiles.rows["user1"].data == profile.data

    @pytest.mark.asyncio
    async def test_attach_twice_by_owner(self, service, sessions, db):
        row = sessions.add(payload=dict(COMPLETE_ANSWERS))
        await service.attach_session(db, row.session_uuid, "user1")
        with pytest.raises(ValueError, match="attached to this account"):
            await service.attach_session(db, row.session_uuid, "user1")

    @pytest.mark.asyncio
    async def test_attach_claimed_by_other_account(self, service, sessions, profiles, db):
        row = sessions.add(payload=dict(COMPLETE_ANSWERS), user_id="user1",
                           status=SessionStatus.ATTACHED)
        with pytest.raises(ValueError, match="another account"):
            await service.attach_session(db, row.session_uuid, "user2")
        assert "user2" not in profiles.rows

    @pytest.mark.asyncio
    async def test_attach_incomplete(self, service, sessions, profiles, db):
        row = sessions.add(payload={"email": "a@b.c"})
        with pytest.raises(ValueError, match="incomplete"):
            await service.attach_session(db, row.session_uuid, "user1")
        assert row.user_id is None
        assert profiles.rows == {}

    @pytest.mark.asyncio
    async def test_attach_unknown(self, service, db):
        with pytest.raises(ValueError, match="not found"):
            await service.attach_session(db, "missing", "user1")

    @pytest.mark.asyncio
    async def test_get_profile_missing(self, service, db):
        with pytest.raises(ValueError, match="not found"):
            await service.get_profile(db, "user1")


# =====================================================================
# Repository (statement building only; db is mocked)
# =====================================================================


class TestSessionRepository:
    @pytest.mark.asyncio
    async def test_create_defaults(self):
        db = MagicMock()
        db.flush = AsyncMock()
        row = await SessionRepository().create(db, payload={"email": "a@b.c"})

        db.add.assert_called_once_with(row)
        assert row.status == SessionStatus.ANONYMOUS
        assert row.completed is False
        assert uuid.UUID(row.session_uuid)

    @pytest.mark.asyncio
    async def test_attach_sets_owner(self):
        db = MagicMock()
        db.flush = AsyncMock()
        repo = SessionRepository()
        row = await repo.create(db, session_uuid="sess-1")
        await repo.attach(db, row, "user1")

        assert row.user_id == "user1"
        assert row.status == SessionStatus.ATTACHED
        assert row.attached_at is not None

    @pytest.mark.asyncio
    async def test_purge_returns_rowcount(self):
        db = AsyncMock()
        db.execute.return_value = MagicMock(rowcount=3)
        assert await SessionRepository().purge_orphans(db, older_than_days=0) == 3
        db.execute.assert_awaited_once()


# =====================================================================
# Routes
# =====================================================================


@pytest.fixture
def make_http(service):
    clients = []

    def _make(settings=None):
        app = create_app(settings or ServerSettings())

        async def _db():
            yield AsyncMock()

        app.dependency_overrides[get_db] = _db
        app.dependency_overrides[get_service] = lambda: service
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def http(make_http):
    return make_http()


class TestRoutes:
    def test_create_session(self, http, sessions):
        resp = http.post("/api/v1/questionnaire/sessions", json={"payload": {"email": "a@b.c"}})
        assert resp.status_code == 201
        handle = resp.json()["session_uuid"]
        assert sessions.rows[handle].payload == {"email": "a@b.c"}

    def test_get_and_put_session(self, http, sessions):
        row = sessions.add(payload={"email": "a@b.c"})
        url = f"/api/v1/questionnaire/sessions/{row.session_uuid}"

        resp = http.put(url, json={"payload": {"email": "x@y.z"}, "completed": True})
        assert resp.status_code == 200

        body = http.get(url).json()
        assert body["payload"] == {"email": "x@y.z"}
        assert body["completed"] is True

    def test_unknown_session_is_404(self, http):
        resp = http.get("/api/v1/questionnaire/sessions/missing")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Resource not found"}

    def test_put_attached_session_is_403(self, http, sessions):
        row = sessions.add(user_id="user1", status=SessionStatus.ATTACHED)
        resp = http.put(f"/api/v1/questionnaire/sessions/{row.session_uuid}", json={"payload": {}})
        assert resp.status_code == 403

    def test_attach_flow(self, http, sessions):
        row = sessions.add(payload=dict(COMPLETE_ANSWERS))
        url = f"/api/v1/questionnaire/sessions/{row.session_uuid}/attach"

        resp = http.post(url, headers={"X-User-ID": "user1"})
        assert resp.status_code == 200
        assert resp.json()["questionnaire_completed"] is True

        assert http.post(url, headers={"X-User-ID": "user1"}).status_code == 409
        assert http.post(url, headers={"X-User-ID": "user2"}).status_code == 403

        profile = http.get("/api/v1/profile", headers={"X-User-ID": "user1"})
        assert profile.status_code == 200
        assert profile.json()["data"]["first_name"] == "Martin"

    def test_status_ignores_text_in_session_handle(self, http):
        for handle in ("attached to this account", "already attached", "incomplete"):
            resp = http.post(
                f"/api/v1/questionnaire/sessions/{handle}/attach",
                headers={"X-User-ID": "user1"},
            )
            assert resp.status_code == 404, handle

    def test_status_ignores_text_in_user_id(self, http):
        resp = http.get("/api/v1/profile", headers={"X-User-ID": "another account"})
        assert resp.status_code == 404

    def test_attach_incomplete_is_422(self, http, sessions):
        row = sessions.add(payload={"email": "a@b.c"})
        resp = http.post(
            f"/api/v1/questionnaire/sessions/{row.session_uuid}/attach",
            headers={"X-User-ID": "user1"},
        )
        assert resp.status_code == 422
        assert resp.json() == {"detail": "Questionnaire incomplete"}

    def test_attach_requires_user_header(self, http, sessions):
        row = sessions.add(payload=dict(COMPLETE_ANSWERS))
        resp = http.post(f"/api/v1/questionnaire/sessions/{row.session_uuid}/attach")
        assert resp.status_code == 401

    def test_proxy_secret_enforced(self, make_http, sessions):
        http = make_http(ServerSettings(trusted_proxy_secret="s3cret"))
        row = sessions.add(payload=dict(COMPLETE_ANSWERS))
        url = f"/api/v1/questionnaire/sessions/{row.session_uuid}/attach"

        assert http.post(url, headers={"X-User-ID": "user1"}).status_code == 403
        assert http.post(
            url, headers={"X-User-ID": "user1", "X-Proxy-Secret": "wrong"},
        ).status_code == 403
        assert http.post(
            url, headers={"X-User-ID": "user1", "X-Proxy-Secret": "s3cret"},
        ).status_code == 200

    def test_missing_profile_is_404(self, http):
        resp = http.get("/api/v1/profile", headers={"X-User-ID": "nobody"})
        assert resp.status_code == 404

    def test_definition_endpoint(self, http, definition):
        body = http.get("/api/v1/questionnaire/definition").json()
        assert body["version"] == definition.version
        assert len(body["steps"]) == len(definition.steps)
        assert body["steps"][0]["key"] == "email"


# =====================================================================
# Cleanup CLI
# =====================================================================


class _FakeFactory:
    def __init__(self, db):
        self.db = db

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.db

    async def __aexit__(self, *exc):
        return False


class TestCleanup:
    @pytest.mark.asyncio
    async def test_run_cleanup_commits_and_disposes(self, monkeypatch):
        db = AsyncMock()
        purge = AsyncMock(return_value=4)
        dispose = AsyncMock()
        monkeypatch.setattr("onboarding_db.engine.get_session_factory", lambda: _FakeFactory(db))
        monkeypatch.setattr("onboarding_db.engine.dispose_engine", dispose)
        monkeypatch.setattr(SessionRepository, "purge_orphans", purge)

        assert await cleanup.run_cleanup(days=7) == 4
        purge.assert_awaited_once_with(db, older_than_days=7)
        db.commit.assert_awaited_once()
        dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_purge_rolls_back_and_still_disposes(self, monkeypatch):
        db = AsyncMock()
        dispose = AsyncMock()
        monkeypatch.setattr("onboarding_db.engine.get_session_factory", lambda: _FakeFactory(db))
        monkeypatch.setattr("onboarding_db.engine.dispose_engine", dispose)
        monkeypatch.setattr(
            SessionRepository, "purge_orphans", AsyncMock(side_effect=RuntimeError("db gone"))
        )

        with pytest.raises(RuntimeError, match="db gone"):
            await cleanup.run_cleanup(days=7)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
        dispose.assert_awaited_once()


class TestSettings:
    def test_defaults_without_env(self, monkeypatch):
        for name in (
            "SERVER_HOST", "SERVER_PORT", "SERVER_CORS_ORIGINS", "SERVER_LOG_LEVEL",
            "SERVER_DEFINITION_PATH", "TRUSTED_PROXY_SECRET",
        ):
            monkeypatch.delenv(name, raising=False)
        assert load_settings() == ServerSettings()

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "9000")
        monkeypatch.setenv("SERVER_CORS_ORIGINS", "https://a.example, ,https://b.example")
        monkeypatch.setenv("SERVER_LOG_LEVEL", "debug")
        monkeypatch.setenv("TRUSTED_PROXY_SECRET", "")

        settings = load_settings()
        assert settings.port == 9000
        assert settings.cors_origins == ["https://a.example", "https://b.example"]
        assert settings.log_level == "DEBUG"
        assert settings.trusted_proxy_secret is None

    def test_unknown_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("SERVER_LOG_LEVEL", "chatty")
        with pytest.raises(ValueError, match="Unknown log level"):
            load_settings()

    def test_port_out_of_range_rejected(self):
        with pytest.raises(ValueError, match="Port out of range"):
            ServerSettings(port=0)

    def test_database_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/onboarding")
        monkeypatch.setenv("DB_ECHO", "true")

        settings = load_database_settings()
        assert settings.async_url.startswith("postgresql+asyncpg://")
        assert settings.echo is True
        assert settings.pool_size == 5

    @pytest.mark.asyncio
    async def test_dispose_without_engine_is_noop(self, monkeypatch):
        monkeypatch.setattr(engine, "_engine", None)
        await engine.dispose_engine()
        assert engine._engine is None
