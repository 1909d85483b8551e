"""
Onboarding API Endpoints.

Separate router from the rest of the app. Exposes the onboarding session's
state and operations to the frontend: each POST invokes one operation and
returns the resulting state.
"""

import inspect
import logging
import time
from collections.abc import Callable
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from fluentpro.web.auth import AuthenticatedUser, get_current_user

from .client import OnboardingAPIClient
from .collaborators import Matched
from .errors import (
    CollaboratorError,
    CollaboratorTimeoutError,
    InvalidTransitionError,
    OnboardingError,
    OperationInProgressError,
    UnauthorizedError,
    ValidationError,
)
from .options import ConversationPartner, Industry, Language, Situation, get_onboarding_options
from .payload import OnboardingSummary
from .session import ASYNC_OPERATIONS, Failed, InFlight, OnboardingSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# =============================================================================
# Session Registry
# =============================================================================


class SessionRegistry:
    """
    In-memory onboarding sessions, one per user.

    Each session talks to the backend with the owning user's latest token.
    Finished sessions are dropped, and so are sessions idle for longer than
    ``ttl`` seconds. Dropped clients are closed by close_finished().
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.ttl = ttl
        self._clock = clock
        self._sessions: dict[str, OnboardingSession] = {}
        self._clients: dict[str, OnboardingAPIClient] = {}
        self._last_seen: dict[str, float] = {}
        self._closing: list[OnboardingAPIClient] = []

    def get_or_create(self, user: AuthenticatedUser) -> OnboardingSession:
        now = self._clock()
        self._evict_idle(now)

        session = self._sessions.get(user.id)
        if session is None:
            client = OnboardingAPIClient(self.base_url, user.access_token, timeout=self.timeout)
            session = OnboardingSession(
                role_matcher=client,
                course_recommender=client,
                selection_store=client,
                on_finish=lambda summary: self._on_finish(user.id, summary),
                timeout=self.timeout,
            )
            self._sessions[user.id] = session
            self._clients[user.id] = client
            logger.info(f"Created onboarding session for user {user.id}")
        else:
            client = self._clients[user.id]
            if client.access_token != user.access_token:
                logger.info(f"Access token for user {user.id} changed, updating client")
                client.access_token = user.access_token

        self._last_seen[user.id] = now
        return session

    def _evict_idle(self, now: float) -> None:
        expired = [
            user_id for user_id, seen in self._last_seen.items()
            if now - seen > self.ttl and not self._sessions[user_id].is_loading
        ]
        for user_id in expired:
            logger.info(f"Dropping idle onboarding session for user {user_id}")
            self._drop(user_id)

    def _drop(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)
        self._last_seen.pop(user_id, None)
        client = self._clients.pop(user_id, None)
        if client is not None:
            self._closing.append(client)

    def _on_finish(self, user_id: str, summary: OnboardingSummary | None) -> None:
        logger.info(f"User {user_id} finished onboarding")
        # Client is closed after the finishing request completes
        self._drop(user_id)

    async def close_finished(self) -> None:
        while self._closing:
            await self._closing.pop().aclose()

    async def aclose(self) -> None:
        await self.close_finished()
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
        self._sessions.clear()
        self._last_seen.clear()


@lru_cache
def get_session_registry() -> SessionRegistry:
    from fluentpro.config import get_settings

    settings = get_settings()
    return SessionRegistry(
        settings.fluentpro_api_base_url,
        settings.collaborator_timeout_seconds,
        ttl=settings.onboarding_session_ttl_seconds,
    )


async def get_session(
    user: AuthenticatedUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> OnboardingSession:
    session = registry.get_or_create(user)
    await registry.close_finished()
    return session


# =============================================================================
# Request/Response Models
# =============================================================================


class LanguageRequest(BaseModel):
    native_language: Language


class IndustryRequest(BaseModel):
    industry: Industry


class RoleRequest(BaseModel):
    """Free-text job title and description. Emptiness is checked by the session."""
    title: str = ""
    description: str = ""


class RoleSelectionRequest(BaseModel):
    role_id: str


class PartnerRequest(BaseModel):
    partner: ConversationPartner


class SituationRequest(BaseModel):
    situation: Situation


class CourseSelectionRequest(BaseModel):
    course_id: str


class RestoreRequest(BaseModel):
    onboarding_status: str | None = None


class ErrorInfo(BaseModel):
    type: str
    message: str
    field: str | None = None


class StateResponse(BaseModel):
    """Projection of the onboarding session for the frontend."""
    current_phase: str
    current_basic_info_step: str
    progress: float
    phases_completed: list[str]
    is_loading: bool
    is_finished: bool
    role_search_in_progress: bool
    role_matched: bool | None = None  # None until a role search has run
    current_partner: str | None = None
    answers: dict = Field(default_factory=dict)
    operations: dict[str, str] = Field(default_factory=dict)
    last_error: ErrorInfo | None = None


def build_state_response(session: OnboardingSession) -> StateResponse:
    error = session.last_error
    result = session.role_match_result
    return StateResponse(
        current_phase=session.current_phase.value,
        current_basic_info_step=session.current_basic_info_step.value,
        progress=session.progress,
        phases_completed=session.phases_completed,
        is_loading=session.is_loading,
        is_finished=session.is_finished,
        role_search_in_progress=session.role_search_in_progress,
        role_matched=None if result is None else isinstance(result, Matched),
        current_partner=session.current_partner.value if session.current_partner else None,
        answers=session.answers.to_dict(),
        operations={name: _status_name(session.operation_status(name)) for name in ASYNC_OPERATIONS},
        last_error=_error_info(error) if error else None,
    )


def _status_name(status) -> str:
    if isinstance(status, InFlight):
        return "in_flight"
    if isinstance(status, Failed):
        return "failed"
    return "idle"


def _error_info(error: OnboardingError) -> ErrorInfo:
    return ErrorInfo(
        type=type(error).__name__,
        message=error.message,
        field=getattr(error, "field", None),
    )


def _http_error(error: OnboardingError) -> HTTPException:
    """Map an onboarding error to an HTTP error."""
    if isinstance(error, ValidationError):
        status = 400
    elif isinstance(error, (InvalidTransitionError, OperationInProgressError)):
        status = 409
    elif isinstance(error, UnauthorizedError):
        status = 401
    elif isinstance(error, CollaboratorTimeoutError):
        status = 504
    elif isinstance(error, CollaboratorError):
        status = 502
    else:
        status = 400
    return HTTPException(status_code=status, detail=_error_info(error).model_dump())


async def _run(session: OnboardingSession, operation, *args) -> StateResponse:
    """Invoke a session operation (sync or async) and project the new state."""
    try:
        result = operation(*args)
        if inspect.isawaitable(result):
            await result
    except OnboardingError as e:
        raise _http_error(e)
    return build_state_response(session)


# =============================================================================
# Endpoints: State
# =============================================================================


@router.get("/options")
async def get_options():
    """Get selectable languages, industries, partners and situations."""
    return get_onboarding_options()


@router.get("/state", response_model=StateResponse)
async def get_state(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    """Get current onboarding progress."""
    return build_state_response(session)


@router.post("/restart", response_model=StateResponse)
async def restart(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    """Start over from the welcome screen."""
    return await _run(session, session.restart)


@router.post("/restore", response_model=StateResponse)
async def restore(request: RestoreRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    """Resume at the phase matching the backend's onboarding status."""
    return await _run(session, session.restore, request.onboarding_status)


@router.post("/welcome/continue", response_model=StateResponse)
async def continue_from_welcome(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.continue_from_welcome)


@router.post("/intro/continue", response_model=StateResponse)
async def continue_from_intro(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.continue_from_intro)


# =============================================================================
# Endpoints: Phase 1 - Basic Info
# =============================================================================


@router.post("/language", response_model=StateResponse)
async def select_language(request: LanguageRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.select_language, request.native_language)


@router.post("/industry", response_model=StateResponse)
async def select_industry(request: IndustryRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.select_industry, request.industry)


@router.post("/role", response_model=StateResponse)
async def submit_role(request: RoleRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    """Submit job title/description for role matching."""
    return await _run(session, session.submit_role, request.title, request.description)


@router.post("/role/select", response_model=StateResponse)
async def select_role(request: RoleSelectionRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.select_role, request.role_id)


@router.post("/role/no-match", response_model=StateResponse)
async def select_no_match(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.select_no_match)


@router.post("/basic-info/back", response_model=StateResponse)
async def previous_basic_info_step(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.previous_basic_info_step)


@router.post("/phase1/continue", response_model=StateResponse)
async def continue_from_phase1_complete(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.continue_from_phase1_complete)


# =============================================================================
# Endpoints: Phase 2 - Partners & Situations
# =============================================================================


@router.post("/partners/toggle", response_model=StateResponse)
async def toggle_partner(request: PartnerRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.toggle_partner, request.partner)


@router.post("/partners/continue", response_model=StateResponse)
async def continue_from_partner_selection(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.continue_from_partner_selection)


@router.post("/situations/toggle", response_model=StateResponse)
async def toggle_situation(request: SituationRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.toggle_situation, request.situation)


@router.post("/situations/continue", response_model=StateResponse)
async def continue_from_situation_selection(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.continue_from_situation_selection)


@router.post("/situations/back", response_model=StateResponse)
async def previous_situation_partner(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.previous_situation_partner)


# =============================================================================
# Endpoints: Courses & Completion
# =============================================================================


@router.post("/phase2/continue", response_model=StateResponse)
async def continue_from_phase2_complete(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    """Fetch course recommendations."""
    return await _run(session, session.continue_from_phase2_complete)


@router.post("/courses/select", response_model=StateResponse)
async def select_course(request: CourseSelectionRequest, session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.select_course, request.course_id)


@router.post("/courses/acknowledge", response_model=StateResponse)
async def acknowledge_no_courses(session: OnboardingSession = Depends(get_session)) -> StateResponse:
    return await _run(session, session.acknowledge_no_courses)


@router.post("/finish", response_model=StateResponse)
async def finish(
    session: OnboardingSession = Depends(get_session),
    registry: SessionRegistry = Depends(get_session_registry),
) -> StateResponse:
    """Submit the onboarding summary and end the session."""
    response = await _run(session, session.finish)
    await registry.close_finished()
    return response
