"""
Onboarding Collaborators.

Contracts for the backend services the onboarding session depends on:

- RoleMatcher: ranks known roles against a free-text job title/description
- CourseRecommender: recommends courses for a role and its communication needs
- SelectionStore: persists each confirmed selection server-side

The session only talks to these interfaces. client.py implements all three
over HTTP; tests substitute AsyncMock instances.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .options import ConversationPartner, Industry, Language, Situation
from .state import CourseRecommendation, RoleCandidate

if TYPE_CHECKING:
    from .payload import OnboardingSummary


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class RoleMatchRequest:
    title: str
    description: str
    industry: Industry


@dataclass(frozen=True)
class CourseRecommendationRequest:
    role_id: str | None  # None when the user picked "no match"
    industry: Industry | None  # None for resumed sessions; the backend uses the stored one
    identified_needs: list[str] = field(default_factory=list)
    native_language: Language | None = None


# =============================================================================
# Role Match Result
# =============================================================================


@dataclass(frozen=True)
class Matched:
    """Matcher returned at least one candidate, best first."""
    candidates: tuple[RoleCandidate, ...]

    def __post_init__(self):
        if not self.candidates:
            raise ValueError("Matched requires at least one candidate")

    @property
    def is_matched(self) -> bool:
        return True


@dataclass(frozen=True)
class NotMatched:
    """Matcher found nothing. A valid outcome, not an error."""

    @property
    def is_matched(self) -> bool:
        return False


RoleMatchResult = Matched | NotMatched


def role_match_result(candidates: list[RoleCandidate]) -> RoleMatchResult:
    """Wrap matcher output, keeping the matcher's order."""
    if not candidates:
        return NotMatched()
    return Matched(candidates=tuple(candidates))


# =============================================================================
# Interfaces
# =============================================================================


class RoleMatcher(ABC):
    """Ranks known roles for a user's job description."""

    @abstractmethod
    async def match_roles(self, request: RoleMatchRequest) -> list[RoleCandidate]:
        """
        Return candidates ordered by descending confidence, possibly empty.

        Ties may come back in any order.
        """


class CourseRecommender(ABC):
    """Recommends courses once role and needs are known."""

    @abstractmethod
    async def recommend_courses(self, request: CourseRecommendationRequest) -> CourseRecommendation:
        """
        Return recommended courses.

        Empty courses with custom_courses_being_generated=True means
        courses are still being built.
        """


class SelectionStore(ABC):
    """Persists onboarding selections on the backend."""

    @abstractmethod
    async def save_native_language(self, language: Language) -> None: ...

    @abstractmethod
    async def save_industry(self, industry: Industry) -> None: ...

    @abstractmethod
    async def select_role(self, role_id: str) -> None: ...

    @abstractmethod
    async def create_custom_role(self, title: str, description: str) -> None: ...

    @abstractmethod
    async def save_partners(self, partners: list[ConversationPartner]) -> None:
        """Partners in priority order (first = highest)."""

    @abstractmethod
    async def save_partner_situations(
        self, partner: ConversationPartner, situations: list[Situation]
    ) -> None: ...

    @abstractmethod
    async def complete_onboarding(self, summary: "OnboardingSummary | None") -> None:
        """Mark onboarding complete. None when the session was resumed without local answers."""
