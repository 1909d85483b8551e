"""
Tests for the onboarding HTTP API.

The session dependency is overridden with a mock-backed session so no
backend is contacted.
"""

import asyncio
import inspect

import pytest
from fastapi.testclient import TestClient

from fluentpro.web.app import app
from fluentpro.web.auth import AuthenticatedUser
from onboarding.api import SessionRegistry, get_session, get_session_registry
from onboarding.errors import CollaboratorError, CollaboratorTimeoutError
from onboarding.session import ASYNC_OPERATIONS, InFlight, OnboardingSession


@pytest.fixture
def registry():
    return SessionRegistry("https://api.test.fluentpro.com/v1", timeout=5.0)


@pytest.fixture
def client(session, registry):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_session_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


def _walk_to_role(client):
    client.post("/api/onboarding/welcome/continue")
    client.post("/api/onboarding/intro/continue")
    client.post("/api/onboarding/language", json={"native_language": "Spanish"})
    return client.post("/api/onboarding/industry", json={"industry": "Banking & Finance"})


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "1.0.0"}


class TestStateEndpoints:

    def test_options(self, client):
        data = client.get("/api/onboarding/options").json()
        assert {"languages", "industries", "partners", "situations"} <= data.keys()
        assert data["partners"][0]["id"] == "Clients"

    def test_initial_state(self, client):
        data = client.get("/api/onboarding/state").json()
        assert data["current_phase"] == "welcome"
        assert data["current_basic_info_step"] == "language"
        assert data["progress"] == 0.0
        assert data["role_matched"] is None
        assert data["last_error"] is None
        assert data["operations"]["submit_role"] == "idle"

    def test_state_lists_every_async_operation(self, client):
        data = client.get("/api/onboarding/state").json()

        public_coroutines = {
            name for name, member in inspect.getmembers(OnboardingSession, inspect.iscoroutinefunction)
            if not name.startswith("_")
        }
        assert list(data["operations"]) == list(ASYNC_OPERATIONS)
        assert set(ASYNC_OPERATIONS) == public_coroutines

    def test_continue_moves_phase(self, client):
        data = client.post("/api/onboarding/welcome/continue").json()
        assert data["current_phase"] == "intro"
        assert data["phases_completed"] == ["welcome"]


class TestBasicInfoEndpoints:

    def test_language_and_industry(self, client, mock_store):
        data = _walk_to_role(client).json()

        assert data["current_basic_info_step"] == "role"
        assert data["answers"]["native_language"] == "Spanish"
        assert data["answers"]["industry"] == "Banking & Finance"
        mock_store.save_industry.assert_awaited_once()

    def test_empty_role_is_400(self, client):
        _walk_to_role(client)

        response = client.post("/api/onboarding/role", json={"title": "", "description": ""})

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "type": "ValidationError",
            "message": "Please enter your job title",
            "field": "role_title",
        }
        state = client.get("/api/onboarding/state").json()
        assert state["current_basic_info_step"] == "role"
        assert state["last_error"]["field"] == "role_title"
        assert state["operations"]["submit_role"] == "failed"

    def test_role_match_and_select(self, client):
        _walk_to_role(client)

        data = client.post("/api/onboarding/role", json={
            "title": "Relationship Manager",
            "description": "I manage corporate clients",
        }).json()
        assert data["role_matched"] is True
        assert [r["id"] for r in data["answers"]["matched_roles"]] == ["role-1", "role-2", "role-3"]

        data = client.post("/api/onboarding/role/select", json={"role_id": "role-2"}).json()
        assert data["current_phase"] == "phase1_complete"
        assert data["answers"]["selected_role"]["id"] == "role-2"

    def test_no_match(self, client, mock_matcher):
        mock_matcher.match_roles.return_value = []
        _walk_to_role(client)

        data = client.post("/api/onboarding/role", json={"title": "Nurse", "description": "ER nurse"}).json()
        assert data["role_matched"] is False

        data = client.post("/api/onboarding/role/no-match").json()
        assert data["current_phase"] == "phase1_complete"
        assert data["answers"]["did_select_no_match"] is True

    def test_back(self, client):
        _walk_to_role(client)
        data = client.post("/api/onboarding/basic-info/back").json()
        assert data["current_basic_info_step"] == "industry"

    def test_unknown_language_rejected_by_schema(self, client):
        client.post("/api/onboarding/welcome/continue")
        client.post("/api/onboarding/intro/continue")

        response = client.post("/api/onboarding/language", json={"native_language": "Klingon"})

        assert response.status_code == 422


class TestErrorMapping:

    def test_invalid_transition_is_409(self, client):
        response = client.post("/api/onboarding/phase1/continue")
        assert response.status_code == 409
        assert response.json()["detail"]["type"] == "InvalidTransitionError"

    def test_collaborator_error_is_502(self, client, mock_store):
        mock_store.save_native_language.side_effect = CollaboratorError("Internal server error", status_code=500)
        client.post("/api/onboarding/welcome/continue")
        client.post("/api/onboarding/intro/continue")

        response = client.post("/api/onboarding/language", json={"native_language": "Spanish"})

        assert response.status_code == 502
        assert client.get("/api/onboarding/state").json()["answers"]["native_language"] is None

    def test_timeout_is_504(self, client, mock_store):
        mock_store.save_native_language.side_effect = CollaboratorTimeoutError("save_native_language", 20.0)
        client.post("/api/onboarding/welcome/continue")
        client.post("/api/onboarding/intro/continue")

        response = client.post("/api/onboarding/language", json={"native_language": "Spanish"})

        assert response.status_code == 504
        assert response.json()["detail"]["message"] == "Request timed out after 20s (save_native_language)"


class TestFullFlow:

    def test_walkthrough_to_finish(self, client, mock_store, on_finish):
        _walk_to_role(client)
        client.post("/api/onboarding/role", json={"title": "Relationship Manager", "description": "Clients"})
        client.post("/api/onboarding/role/select", json={"role_id": "role-1"})
        client.post("/api/onboarding/phase1/continue")

        client.post("/api/onboarding/partners/toggle", json={"partner": "Colleagues"})
        client.post("/api/onboarding/partners/toggle", json={"partner": "Clients"})
        data = client.post("/api/onboarding/partners/continue").json()
        assert data["current_phase"] == "conversation_situations"
        assert data["current_partner"] == "Clients"

        client.post("/api/onboarding/situations/toggle", json={"situation": "Meetings"})
        data = client.post("/api/onboarding/situations/continue").json()
        assert data["current_partner"] == "Colleagues"

        client.post("/api/onboarding/situations/toggle", json={"situation": "Phone Calls"})
        data = client.post("/api/onboarding/situations/continue").json()
        assert data["current_phase"] == "phase2_complete"
        assert len(data["answers"]["partner_situations"]) == 2

        data = client.post("/api/onboarding/phase2/continue").json()
        assert [c["id"] for c in data["answers"]["course_recommendation"]["courses"]] == ["course-1", "course-2"]

        data = client.post("/api/onboarding/courses/select", json={"course_id": "course-1"}).json()
        assert data["current_phase"] == "onboarding_complete"
        assert data["progress"] == 1.0

        data = client.post("/api/onboarding/finish").json()
        assert data["is_finished"] is True
        mock_store.complete_onboarding.assert_awaited_once()
        on_finish.assert_called_once()

    def test_restore_and_restart(self, client):
        data = client.post("/api/onboarding/restore", json={"onboarding_status": "conversation_situations"}).json()
        assert data["current_phase"] == "conversation_partners"

        data = client.post("/api/onboarding/restart").json()
        assert data["current_phase"] == "welcome"


class TestAuth:

    def test_missing_header(self):
        response = TestClient(app).get("/api/onboarding/state")
        assert response.status_code == 401

    def test_malformed_header(self):
        response = TestClient(app).get("/api/onboarding/state", headers={"Authorization": "Token abc"})
        assert response.status_code == 401


class TestSessionRegistry:

    def test_one_session_per_user(self, registry):
        alice = AuthenticatedUser(id="user-1", email="alice@example.com", access_token="a")
        bob = AuthenticatedUser(id="user-2", email=None, access_token="b")

        first = registry.get_or_create(alice)

        assert registry.get_or_create(alice) is first
        assert registry.get_or_create(bob) is not first
        asyncio.run(registry.aclose())

    def test_finished_session_is_dropped(self, registry):
        user = AuthenticatedUser(id="user-1", email=None, access_token="a")
        session = registry.get_or_create(user)

        session.restore("onboarding_complete")
        registry._on_finish(user.id, None)
        asyncio.run(registry.close_finished())

        assert registry.get_or_create(user) is not session
        asyncio.run(registry.aclose())

    def test_new_token_reaches_existing_client(self, registry):
        session = registry.get_or_create(AuthenticatedUser(id="user-1", email=None, access_token="old"))

        again = registry.get_or_create(AuthenticatedUser(id="user-1", email=None, access_token="new"))

        assert again is session
        assert registry._clients["user-1"].access_token == "new"
        assert registry._clients["user-1"]._headers()["Authorization"] == "Bearer new"
        asyncio.run(registry.aclose())

    def test_idle_session_is_evicted(self):
        now = [0.0]
        registry = SessionRegistry(
            "https://api.test.fluentpro.com/v1", timeout=5.0, ttl=60.0, clock=lambda: now[0]
        )
        alice = AuthenticatedUser(id="user-1", email=None, access_token="a")
        bob = AuthenticatedUser(id="user-2", email=None, access_token="b")

        stale = registry.get_or_create(alice)
        stale_client = registry._clients["user-1"]
        now[0] = 30.0
        kept = registry.get_or_create(bob)
        now[0] = 75.0

        assert registry.get_or_create(bob) is kept
        assert "user-1" not in registry._sessions
        asyncio.run(registry.close_finished())
        assert stale_client._http.is_closed

        assert registry.get_or_create(alice) is not stale
        asyncio.run(registry.aclose())

    def test_session_with_call_in_flight_is_kept(self):
        now = [0.0]
        registry = SessionRegistry(
            "https://api.test.fluentpro.com/v1", timeout=5.0, ttl=60.0, clock=lambda: now[0]
        )
        user = AuthenticatedUser(id="user-1", email=None, access_token="a")
        session = registry.get_or_create(user)
        session._operations["submit_role"] = InFlight()

        now[0] = 120.0

        assert registry.get_or_create(user) is session
        asyncio.run(registry.aclose())
