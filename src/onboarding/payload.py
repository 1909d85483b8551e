"""
Onboarding Summary.

The OnboardingSummary is what onboarding hands to the rest of the product
when the user finishes: who they are, what they do, who they talk to and
which course they start with.
"""

from dataclasses import dataclass, field, asdict
import json

from .errors import ValidationError
from .state import OnboardingAnswers


@dataclass
class RoleSummary:
    """The role the user ended up with."""
    title: str
    description: str
    role_id: str | None = None  # None for custom roles
    is_custom: bool = False     # User chose "none of these match"


@dataclass
class PartnerSummary:
    """One conversation partner and the situations chosen for it."""
    partner: str
    priority: int  # 1 = first in order
    situations: list[str] = field(default_factory=list)


@dataclass
class OnboardingSummary:
    """
    Complete output from the onboarding flow.

    Sent to the backend on completion and passed to the app entry hand-off.
    """
    native_language: str
    industry: str
    role: RoleSummary
    partners: list[PartnerSummary] = field(default_factory=list)

    # Course selection (optional: custom courses may still be in the works)
    selected_course_id: str | None = None
    custom_courses_pending: bool = False
    estimated_wait: str | None = None

    onboarding_version: str = "1.0"

    def to_dict(self) -> dict:
        """Serialize for storage/transfer."""
        return asdict(self)

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())


def identified_needs(answers: OnboardingAnswers) -> list[str]:
    """
    Derive communication needs from recorded partner situations.

    One entry per (partner, situation) pair, e.g. "Meetings with Clients",
    in partner order then situation order.
    """
    needs = []
    for partner in answers.sorted_partners:
        entry = answers.situations_for(partner)
        if entry is None:
            continue
        for situation in entry.sorted_situations():
            needs.append(f"{situation.value} with {partner.value}")
    return needs


def build_summary(answers: OnboardingAnswers) -> OnboardingSummary:
    """
    Build the final summary from collected answers.

    Raises ValidationError if basic info or conversation data is incomplete.
    """
    if not answers.is_basic_info_complete:
        raise ValidationError("basic_info", "Please complete your language, industry and role first")
    if not answers.is_conversation_complete:
        raise ValidationError(
            "partner_situations", "Please choose situations for each conversation partner"
        )

    if answers.selected_role is not None:
        role = RoleSummary(
            title=answers.selected_role.title,
            description=answers.selected_role.description,
            role_id=answers.selected_role.id,
        )
    else:
        role = RoleSummary(
            title=answers.role_title.strip(),
            description=answers.role_description.strip(),
            is_custom=True,
        )

    partners = []
    for priority, partner in enumerate(answers.sorted_partners, start=1):
        entry = answers.situations_for(partner)
        partners.append(PartnerSummary(
            partner=partner.value,
            priority=priority,
            situations=[s.value for s in entry.sorted_situations()],
        ))

    recommendation = answers.course_recommendation
    return OnboardingSummary(
        native_language=answers.native_language.value,
        industry=answers.industry.value,
        role=role,
        partners=partners,
        selected_course_id=answers.selected_course.id if answers.selected_course else None,
        custom_courses_pending=bool(recommendation and recommendation.is_pending),
        estimated_wait=recommendation.estimated_wait if recommendation else None,
    )


def describe_summary(summary: OnboardingSummary) -> str:
    """One-line human description, for logs and the CLI."""
    role = summary.role.title + (" (custom)" if summary.role.is_custom else "")
    partners = ", ".join(p.partner for p in summary.partners) or "nobody"
    course = summary.selected_course_id or (
        f"custom course in {summary.estimated_wait}" if summary.custom_courses_pending else "none"
    )
    return (
        f"{summary.native_language} speaker, {role} in {summary.industry}; "
        f"talks with {partners}; course: {course}"
    )
