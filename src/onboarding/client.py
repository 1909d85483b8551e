"""
Onboarding API Client.

HTTP implementation of the onboarding collaborators (role matching, course
recommendation, selection persistence) against the FluentPro backend.
JSON over HTTPS with bearer-token auth.
"""

import logging
from urllib.parse import quote
from typing import Any

import httpx
from pydantic import BaseModel, Field

from .collaborators import (
    CourseRecommendationRequest,
    CourseRecommender,
    RoleMatcher,
    RoleMatchRequest,
    SelectionStore,
)
from .errors import CollaboratorError, CollaboratorTimeoutError, UnauthorizedError
from .options import ConversationPartner, Industry, Language, Situation
from .payload import OnboardingSummary
from .state import Course, CourseRecommendation, RoleCandidate

logger = logging.getLogger(__name__)


# =============================================================================
# Wire Models
# =============================================================================


class RoleMatchWire(BaseModel):
    """One entry of matched_roles as sent by the backend."""
    id: str
    title: str
    description: str = ""
    industry_name: str = ""
    hierarchy_level: str = ""
    search_keywords: list[str] = Field(default_factory=list)
    common_tasks: list[str] | None = None
    relevance_score: float = Field(ge=0, le=1)

    def to_candidate(self) -> RoleCandidate:
        tasks = self.common_tasks if self.common_tasks is not None else self.search_keywords
        return RoleCandidate(
            id=self.id,
            title=self.title,
            description=self.description,
            industry=self.industry_name,
            common_tasks=tuple(tasks),
            confidence_score=self.relevance_score,
        )


class RoleMatchResponse(BaseModel):
    success: bool = True
    matched_roles: list[RoleMatchWire] = Field(default_factory=list)
    total_matches: int = 0


class CourseWire(BaseModel):
    id: str
    name: str
    description: str = ""
    level: str = ""
    estimated_duration: str = ""
    rating: float = 0.0
    functional_language: list[str] = Field(default_factory=list)

    def to_course(self) -> Course:
        return Course(
            id=self.id,
            name=self.name,
            description=self.description,
            level=self.level,
            estimated_duration=self.estimated_duration,
            rating=self.rating,
            functional_language=tuple(self.functional_language),
        )


class CourseRecommendationResponse(BaseModel):
    courses: list[CourseWire] = Field(default_factory=list)
    custom_courses_being_created: bool = False
    estimated_creation_time: str | None = None


class UserProfile(BaseModel):
    """Authenticated user, from GET /user/profile."""
    id: str
    email: str | None = None
    full_name: str | None = None


# =============================================================================
# Client
# =============================================================================


class OnboardingAPIClient(RoleMatcher, CourseRecommender, SelectionStore):
    """
    Backend client for the onboarding flow.

    Usage:
        async with OnboardingAPIClient(base_url, token) as client:
            session = OnboardingSession(role_matcher=client, ...)
    """

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        timeout: float = 20.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._access_token = access_token
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "OnboardingAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @access_token.setter
    def access_token(self, token: str | None) -> None:
        """Swap the bearer token, e.g. after the user re-authenticates."""
        self._access_token = token

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(self, method: str, path: str, body: dict | None = None) -> dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Maps every failure to a CollaboratorError subtype.
        """
        logger.debug(f"{method} {path}")
        try:
            response = await self._http.request(method, path, json=body, headers=self._headers())
        except httpx.TimeoutException:
            logger.error(f"{method} {path} timed out after {self.timeout:g}s")
            raise CollaboratorTimeoutError(path, self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise CollaboratorError(f"Network error: {e}")

        status = response.status_code
        if status == 401:
            raise UnauthorizedError()
        if 400 <= status < 500:
            message = _error_message(response) or f"Request failed (HTTP {status})"
            logger.warning(f"{method} {path} rejected ({status}): {message}")
            raise CollaboratorError(message, status_code=status)
        if status >= 500:
            logger.error(f"{method} {path} server error ({status})")
            raise CollaboratorError("Internal server error", status_code=status)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            raise CollaboratorError("Failed to decode response", status_code=status)
        if not isinstance(data, dict):
            raise CollaboratorError("Failed to decode response", status_code=status)

        if data.get("success") is False:
            raise CollaboratorError(data.get("message") or "Request was not successful", status_code=status)
        return data

    def _decode(self, model: type[BaseModel], data: dict[str, Any]) -> Any:
        try:
            return model.model_validate(_unwrap(data))
        except ValueError as e:
            logger.error(f"Failed to decode {model.__name__}: {e}")
            raise CollaboratorError("Failed to decode response")

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    async def fetch_profile(self) -> UserProfile:
        data = await self._request("GET", "/user/profile")
        return self._decode(UserProfile, data)

    # -------------------------------------------------------------------------
    # RoleMatcher / CourseRecommender
    # -------------------------------------------------------------------------

    async def match_roles(self, request: RoleMatchRequest) -> list[RoleCandidate]:
        data = await self._request("POST", "/onboarding/roles/match", {
            "job_title": request.title,
            "job_description": request.description,
            "user_industry": request.industry.value,
        })
        response = self._decode(RoleMatchResponse, data)
        # Backend order is authoritative
        return [role.to_candidate() for role in response.matched_roles]

    async def recommend_courses(self, request: CourseRecommendationRequest) -> CourseRecommendation:
        data = await self._request("POST", "/onboarding/courses/recommend", {
            "role_id": request.role_id,
            "industry": request.industry.value if request.industry else None,
            "identified_needs": request.identified_needs,
            "native_language": request.native_language.value if request.native_language else None,
        })
        response = self._decode(CourseRecommendationResponse, data)
        return CourseRecommendation(
            courses=[c.to_course() for c in response.courses],
            custom_courses_being_generated=response.custom_courses_being_created,
            estimated_wait=response.estimated_creation_time,
        )

    # -------------------------------------------------------------------------
    # SelectionStore
    # -------------------------------------------------------------------------

    async def save_native_language(self, language: Language) -> None:
        await self._request("POST", "/onboarding/language", {"native_language": language.value})

    async def save_industry(self, industry: Industry) -> None:
        await self._request("POST", "/onboarding/industry", {"industry_name": industry.value})

    async def select_role(self, role_id: str) -> None:
        await self._request("POST", "/onboarding/roles/select", {"role_id": role_id})

    async def create_custom_role(self, title: str, description: str) -> None:
        await self._request("POST", "/onboarding/roles/custom", {
            "job_title": title,
            "job_description": description,
            "hierarchy_level": "associate",
        })

    async def save_partners(self, partners: list[ConversationPartner]) -> None:
        await self._request("POST", "/onboarding/partners", {
            "partner_selections": [
                {"communication_partner_id": p.value, "priority": i}
                for i, p in enumerate(partners, start=1)
            ],
        })

    async def save_partner_situations(
        self, partner: ConversationPartner, situations: list[Situation]
    ) -> None:
        await self._request("POST", f"/onboarding/partners/{quote(partner.value, safe='')}/situations", {
            "unit_selections": [
                {"unit_id": s.value, "priority": i}
                for i, s in enumerate(situations, start=1)
            ],
        })

    async def complete_onboarding(self, summary: OnboardingSummary | None) -> None:
        await self._request("POST", "/onboarding/complete", summary.to_dict() if summary else {})


def _unwrap(data: dict[str, Any]) -> dict[str, Any]:
    """Return the `data` member of a {success, data, message} envelope, if present."""
    inner = data.get("data")
    return inner if isinstance(inner, dict) else data


def _error_message(response: httpx.Response) -> str | None:
    """Pull a human message out of an error body (message, error or detail)."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("message", "error", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None
