"""
Onboarding State.

Phase and step model plus the answers collected during one onboarding run.
The session (see session.py) is the only writer; everything here is data
and small helpers that keep the answers internally consistent.
"""

import logging
from dataclasses import dataclass, field, asdict
from enum import Enum

from .options import ConversationPartner, Industry, Language, Situation, partner_sort_key

logger = logging.getLogger(__name__)


class OnboardingPhase(Enum):
    """Onboarding flow phases, in order."""
    WELCOME = "welcome"
    INTRO = "intro"
    BASIC_INFO = "basic_info"                            # Phase 1: language, industry, role
    PHASE1_COMPLETE = "phase1_complete"
    CONVERSATION_PARTNERS = "conversation_partners"      # Phase 2a: who
    CONVERSATION_SITUATIONS = "conversation_situations"  # Phase 2b: when, per partner
    PHASE2_COMPLETE = "phase2_complete"                  # Course recommendation
    ONBOARDING_COMPLETE = "onboarding_complete"

    @property
    def ordinal(self) -> int:
        return PHASE_ORDER.index(self)

    @property
    def progress(self) -> float:
        """Fraction of the flow completed when this phase is current."""
        return self.ordinal / (len(PHASE_ORDER) - 1)


class BasicInfoStep(Enum):
    """Sub-steps of the BASIC_INFO phase, in order."""
    LANGUAGE = "language"
    INDUSTRY = "industry"
    ROLE = "role"
    ROLE_RESULT = "role_result"

    @property
    def ordinal(self) -> int:
        return STEP_ORDER.index(self)


PHASE_ORDER = list(OnboardingPhase)
STEP_ORDER = list(BasicInfoStep)

# Server-reported onboarding_status strings that are not phase values
_STATUS_ALIASES = {
    "not_started": OnboardingPhase.WELCOME,
    "pending": OnboardingPhase.WELCOME,
    "in_progress": OnboardingPhase.BASIC_INFO,
    "completed": OnboardingPhase.ONBOARDING_COMPLETE,
    "complete": OnboardingPhase.ONBOARDING_COMPLETE,
}


# =============================================================================
# Collaborator Data
# =============================================================================


@dataclass(frozen=True)
class RoleCandidate:
    """A job role suggested by the role matcher."""
    id: str
    title: str
    description: str
    industry: str
    common_tasks: tuple[str, ...] = ()
    confidence_score: float = 0.0  # 0-1, higher is better

    def to_dict(self) -> dict:
        data = asdict(self)
        data["common_tasks"] = list(self.common_tasks)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RoleCandidate":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            industry=data.get("industry", ""),
            common_tasks=tuple(data.get("common_tasks", ())),
            confidence_score=float(data.get("confidence_score", 0.0)),
        )


@dataclass(frozen=True)
class Course:
    """A recommended business English course."""
    id: str
    name: str
    description: str = ""
    level: str = ""                # e.g. "Intermediate"
    estimated_duration: str = ""   # e.g. "4 weeks"
    rating: float = 0.0            # 0-5
    functional_language: tuple[str, ...] = ()


@dataclass
class CourseRecommendation:
    """Course recommender response."""
    courses: list[Course] = field(default_factory=list)
    custom_courses_being_generated: bool = False
    estimated_wait: str | None = None  # e.g. "24-48 hours"

    @property
    def is_pending(self) -> bool:
        """No courses yet, but custom ones are being built."""
        return not self.courses and self.custom_courses_being_generated

    def find_course(self, course_id: str) -> Course | None:
        return next((c for c in self.courses if c.id == course_id), None)


# =============================================================================
# Answers
# =============================================================================


@dataclass
class PartnerSituations:
    """Situations selected for one conversation partner."""
    partner: ConversationPartner
    situations: set[Situation] = field(default_factory=set)

    def sorted_situations(self) -> list[Situation]:
        order = list(Situation)
        return sorted(self.situations, key=order.index)


@dataclass
class OnboardingAnswers:
    """
    Everything collected during one onboarding run.

    Created fresh at onboarding start and discarded after completion.
    """
    # Phase 1: Basic info
    native_language: Language | None = None
    industry: Industry | None = None
    role_title: str = ""
    role_description: str = ""
    matched_roles: list[RoleCandidate] = field(default_factory=list)  # Order as returned by matcher
    selected_role: RoleCandidate | None = None
    did_select_no_match: bool = False

    # Phase 2: Conversation partners and situations
    selected_partners: set[ConversationPartner] = field(default_factory=set)
    partner_situations: list[PartnerSituations] = field(default_factory=list)
    current_partner_index: int = 0
    current_situations: set[Situation] = field(default_factory=set)  # In-progress set for the cursor

    # Course recommendation
    course_recommendation: CourseRecommendation | None = None
    selected_course: Course | None = None

    @property
    def sorted_partners(self) -> list[ConversationPartner]:
        """Selected partners in deterministic (declaration) order."""
        return sorted(self.selected_partners, key=partner_sort_key)

    @property
    def is_basic_info_complete(self) -> bool:
        return (
            self.native_language is not None
            and self.industry is not None
            and bool(self.role_title.strip())
            and bool(self.role_description.strip())
            and (self.selected_role is not None) != self.did_select_no_match
        )

    @property
    def is_conversation_complete(self) -> bool:
        return (
            bool(self.selected_partners)
            and len(self.partner_situations) == len(self.selected_partners)
            and all(entry.situations for entry in self.partner_situations)
        )

    def situations_for(self, partner: ConversationPartner) -> PartnerSituations | None:
        return next((e for e in self.partner_situations if e.partner == partner), None)

    def upsert_partner_situations(self, partner: ConversationPartner, situations: set[Situation]) -> None:
        """Record situations for a partner, replacing any earlier entry."""
        entry = self.situations_for(partner)
        if entry is None:
            self.partner_situations.append(PartnerSituations(partner=partner, situations=set(situations)))
        else:
            entry.situations = set(situations)

    def remove_partner(self, partner: ConversationPartner) -> None:
        """Deselect a partner and drop its recorded situations."""
        self.selected_partners.discard(partner)
        self.partner_situations = [e for e in self.partner_situations if e.partner != partner]

    def to_dict(self) -> dict:
        """Serialize answers to a JSON-compatible dict."""
        recommendation = None
        if self.course_recommendation is not None:
            recommendation = {
                "courses": [asdict(c) for c in self.course_recommendation.courses],
                "custom_courses_being_generated": self.course_recommendation.custom_courses_being_generated,
                "estimated_wait": self.course_recommendation.estimated_wait,
            }
        return {
            "native_language": self.native_language.value if self.native_language else None,
            "industry": self.industry.value if self.industry else None,
            "role_title": self.role_title,
            "role_description": self.role_description,
            "matched_roles": [r.to_dict() for r in self.matched_roles],
            "selected_role": self.selected_role.to_dict() if self.selected_role else None,
            "did_select_no_match": self.did_select_no_match,
            "selected_partners": [p.value for p in self.sorted_partners],
            "partner_situations": [
                {"partner": e.partner.value, "situations": [s.value for s in e.sorted_situations()]}
                for e in self.partner_situations
            ],
            "current_partner_index": self.current_partner_index,
            "current_situations": [s.value for s in Situation if s in self.current_situations],
            "course_recommendation": recommendation,
            "selected_course": asdict(self.selected_course) if self.selected_course else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OnboardingAnswers":
        """Deserialize answers from dict."""
        recommendation = None
        if data.get("course_recommendation"):
            rec = data["course_recommendation"]
            recommendation = CourseRecommendation(
                courses=[_course_from_dict(c) for c in rec.get("courses", [])],
                custom_courses_being_generated=rec.get("custom_courses_being_generated", False),
                estimated_wait=rec.get("estimated_wait"),
            )
        return cls(
            native_language=Language(data["native_language"]) if data.get("native_language") else None,
            industry=Industry(data["industry"]) if data.get("industry") else None,
            role_title=data.get("role_title", ""),
            role_description=data.get("role_description", ""),
            matched_roles=[RoleCandidate.from_dict(r) for r in data.get("matched_roles", [])],
            selected_role=RoleCandidate.from_dict(data["selected_role"]) if data.get("selected_role") else None,
            did_select_no_match=data.get("did_select_no_match", False),
            selected_partners={ConversationPartner(p) for p in data.get("selected_partners", [])},
            partner_situations=[
                PartnerSituations(
                    partner=ConversationPartner(e["partner"]),
                    situations={Situation(s) for s in e.get("situations", [])},
                )
                for e in data.get("partner_situations", [])
            ],
            current_partner_index=data.get("current_partner_index", 0),
            current_situations={Situation(s) for s in data.get("current_situations", [])},
            course_recommendation=recommendation,
            selected_course=_course_from_dict(data["selected_course"]) if data.get("selected_course") else None,
        )


def _course_from_dict(data: dict) -> Course:
    data = dict(data)
    data["functional_language"] = tuple(data.get("functional_language", ()))
    return Course(**data)


# =============================================================================
# Phase Helpers
# =============================================================================


def phase_from_status(status: str | None) -> OnboardingPhase:
    """
    Map a server-reported onboarding status to a phase.

    Accepts phase values ("conversation_partners") and lifecycle aliases
    ("not_started", "completed"). Unknown values restart at WELCOME.
    """
    if not status:
        return OnboardingPhase.WELCOME

    normalized = status.strip().lower().replace("-", "_").replace(" ", "_")
    if normalized in _STATUS_ALIASES:
        return _STATUS_ALIASES[normalized]

    try:
        return OnboardingPhase(normalized)
    except ValueError:
        logger.warning(f"Unknown onboarding status '{status}', starting from welcome")
        return OnboardingPhase.WELCOME


def get_completed_phases(phase: OnboardingPhase) -> list[str]:
    """Get names of all phases before the given one."""
    return [p.value for p in PHASE_ORDER[:phase.ordinal]]
