"""
Onboarding Session.

The onboarding state machine. Owns the current phase, the basic-info step
and the collected answers, and exposes the operations a UI invokes as the
user moves through the flow:

    welcome -> intro -> basic_info (language -> industry -> role -> role_result)
      -> phase1_complete -> conversation_partners -> conversation_situations
      -> phase2_complete -> onboarding_complete

Phases only move forward. The exceptions are the one-step-back affordances
inside basic_info and inside the per-partner situation loop.

Every operation mutates state only on success. Failures are recorded in
``last_error`` (one slot, overwritten) and re-raised. Async operations
advance only after their collaborator call has confirmed and time out
after ``timeout`` seconds. While one is in flight every other operation
is rejected with OperationInProgressError.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, NoReturn, TypeVar

from .collaborators import (
    CourseRecommendationRequest,
    CourseRecommender,
    RoleMatcher,
    RoleMatchRequest,
    RoleMatchResult,
    SelectionStore,
    role_match_result,
)
from .errors import (
    CollaboratorError,
    CollaboratorTimeoutError,
    InvalidTransitionError,
    OnboardingError,
    OperationInProgressError,
    ValidationError,
)
from .options import ConversationPartner, Industry, Language, Situation
from .payload import OnboardingSummary, build_summary, describe_summary, identified_needs
from .state import (
    STEP_ORDER,
    BasicInfoStep,
    CourseRecommendation,
    OnboardingAnswers,
    OnboardingPhase,
    RoleCandidate,
    get_completed_phases,
    phase_from_status,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)
T = TypeVar("T")


# =============================================================================
# Operation Status
# =============================================================================


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class InFlight:
    pass


@dataclass(frozen=True)
class Failed:
    error: OnboardingError


OperationStatus = Idle | InFlight | Failed

FinishHandler = Callable[[OnboardingSummary | None], None]

# Async operations tracked by operation_status(), in flow order
ASYNC_OPERATIONS = (
    "select_language",
    "select_industry",
    "submit_role",
    "select_role",
    "select_no_match",
    "continue_from_partner_selection",
    "continue_from_situation_selection",
    "continue_from_phase2_complete",
    "finish",
)


class OnboardingSession:
    """
    State holder for one onboarding run.

    Construct one per user with its collaborators; there is no shared
    instance. All mutation is expected from a single control flow (one
    event loop).
    """

    def __init__(
        self,
        role_matcher: RoleMatcher,
        course_recommender: CourseRecommender | None = None,
        selection_store: SelectionStore | None = None,
        on_finish: FinishHandler | None = None,
        timeout: float | None = None,
    ):
        if timeout is None:
            from fluentpro.config import settings
            timeout = settings.collaborator_timeout_seconds

        self.timeout = timeout
        self._role_matcher = role_matcher
        self._course_recommender = course_recommender
        self._selection_store = selection_store
        self._on_finish = on_finish
        self._reset()

    def _reset(self) -> None:
        self._phase = OnboardingPhase.WELCOME
        self._step = BasicInfoStep.LANGUAGE
        self._answers = OnboardingAnswers()
        self._role_match_result: RoleMatchResult | None = None
        self._role_search_in_progress = False
        self._last_error: OnboardingError | None = None
        self._operations: dict[str, OperationStatus] = {}
        self._finished = False

    # =========================================================================
    # Published State
    # =========================================================================

    @property
    def current_phase(self) -> OnboardingPhase:
        return self._phase

    @property
    def current_basic_info_step(self) -> BasicInfoStep:
        return self._step

    @property
    def answers(self) -> OnboardingAnswers:
        return self._answers

    @property
    def last_error(self) -> OnboardingError | None:
        return self._last_error

    @property
    def role_search_in_progress(self) -> bool:
        return self._role_search_in_progress

    @property
    def role_match_result(self) -> RoleMatchResult | None:
        return self._role_match_result

    @property
    def is_loading(self) -> bool:
        return any(isinstance(s, InFlight) for s in self._operations.values())

    @property
    def is_finished(self) -> bool:
        return self._finished

    @property
    def progress(self) -> float:
        return self._phase.progress

    @property
    def phases_completed(self) -> list[str]:
        return get_completed_phases(self._phase)

    @property
    def current_partner(self) -> ConversationPartner | None:
        """Partner whose situations are being collected, if any."""
        if self._phase != OnboardingPhase.CONVERSATION_SITUATIONS:
            return None
        partners = self._answers.sorted_partners
        if self._answers.current_partner_index < len(partners):
            return partners[self._answers.current_partner_index]
        return None

    def operation_status(self, operation: str) -> OperationStatus:
        return self._operations.get(operation, Idle())

    # =========================================================================
    # Phase Transitions
    # =========================================================================

    def continue_from_welcome(self) -> None:
        self._reject_while_busy()
        self._require("continue_from_welcome", OnboardingPhase.WELCOME)
        self._advance(OnboardingPhase.INTRO)

    def continue_from_intro(self) -> None:
        self._reject_while_busy()
        self._require("continue_from_intro", OnboardingPhase.INTRO)
        self._step = BasicInfoStep.LANGUAGE
        self._advance(OnboardingPhase.BASIC_INFO)

    def continue_from_phase1_complete(self) -> None:
        self._reject_while_busy()
        self._require("continue_from_phase1_complete", OnboardingPhase.PHASE1_COMPLETE)
        self._advance(OnboardingPhase.CONVERSATION_PARTNERS)

    # =========================================================================
    # Phase 1: Basic Info
    # =========================================================================

    async def select_language(self, language: Language | str) -> None:
        """Persist the native language, then move to the industry step."""
        async with self._operation("select_language"):
            self._require("select_language", OnboardingPhase.BASIC_INFO, BasicInfoStep.LANGUAGE)
            language = _coerce(Language, language, "native_language", "Please select your native language")

            if self._selection_store is not None:
                await self._call("save_native_language", self._selection_store.save_native_language(language))

            self._answers.native_language = language
            self._set_step(BasicInfoStep.INDUSTRY)

    async def select_industry(self, industry: Industry | str) -> None:
        """Persist the industry, then move to the role step."""
        async with self._operation("select_industry"):
            self._require("select_industry", OnboardingPhase.BASIC_INFO, BasicInfoStep.INDUSTRY)
            industry = _coerce(Industry, industry, "industry", "Please select your industry")

            if self._selection_store is not None:
                await self._call("save_industry", self._selection_store.save_industry(industry))

            self._answers.industry = industry
            self._set_step(BasicInfoStep.ROLE)

    async def submit_role(self, title: str, description: str) -> RoleMatchResult:
        """
        Match the user's job title and description against known roles.

        Empty matcher output is a valid NotMatched result. Candidate order is
        kept exactly as returned.
        """
        async with self._operation("submit_role"):
            self._require("submit_role", OnboardingPhase.BASIC_INFO, BasicInfoStep.ROLE)

            title = (title or "").strip()
            description = (description or "").strip()
            if not title:
                raise ValidationError("role_title", "Please enter your job title")
            if not description:
                raise ValidationError("role_description", "Please describe what you do in your role")
            industry = self._answers.industry
            if industry is None:
                raise ValidationError("industry", "Please select your industry first")

            request = RoleMatchRequest(title=title, description=description, industry=industry)
            self._role_search_in_progress = True
            try:
                candidates = await self._call("match_roles", self._role_matcher.match_roles(request))
            finally:
                self._role_search_in_progress = False

            self._answers.role_title = title
            self._answers.role_description = description
            self._answers.matched_roles = list(candidates)
            self._role_match_result = role_match_result(self._answers.matched_roles)
            logger.info(f"Role search for '{title}' returned {len(candidates)} candidate(s)")
            self._set_step(BasicInfoStep.ROLE_RESULT)
            return self._role_match_result

    async def select_role(self, candidate: RoleCandidate | str) -> None:
        """Confirm one of the matched roles and complete phase 1."""
        async with self._operation("select_role"):
            self._require("select_role", OnboardingPhase.BASIC_INFO, BasicInfoStep.ROLE_RESULT)

            role_id = candidate.id if isinstance(candidate, RoleCandidate) else candidate
            role = next((r for r in self._answers.matched_roles if r.id == role_id), None)
            if role is None:
                raise ValidationError("selected_role", "Please choose one of the suggested roles")

            if self._selection_store is not None:
                await self._call("select_role", self._selection_store.select_role(role.id))

            self._answers.selected_role = role
            self._answers.did_select_no_match = False
            self._advance(OnboardingPhase.PHASE1_COMPLETE)

    async def select_no_match(self) -> None:
        """Reject all suggestions; the typed title/description become a custom role."""
        async with self._operation("select_no_match"):
            self._require("select_no_match", OnboardingPhase.BASIC_INFO, BasicInfoStep.ROLE_RESULT)

            if self._selection_store is not None:
                await self._call(
                    "create_custom_role",
                    self._selection_store.create_custom_role(
                        self._answers.role_title, self._answers.role_description
                    ),
                )

            self._answers.selected_role = None
            self._answers.did_select_no_match = True
            self._advance(OnboardingPhase.PHASE1_COMPLETE)

    def previous_basic_info_step(self) -> None:
        """Go back one step within basic info. No-op on the first step."""
        self._reject_while_busy()
        self._require("previous_basic_info_step", OnboardingPhase.BASIC_INFO)

        if self._step == BasicInfoStep.LANGUAGE:
            self._last_error = None
            return

        if self._step == BasicInfoStep.ROLE_RESULT:
            self._answers.matched_roles = []
            self._role_match_result = None

        self._set_step(STEP_ORDER[self._step.ordinal - 1])

    # =========================================================================
    # Phase 2: Conversation Partners & Situations
    # =========================================================================

    def toggle_partner(self, partner: ConversationPartner | str) -> None:
        """Add or remove a partner. Removing also drops its situations."""
        self._reject_while_busy()
        self._require("toggle_partner", OnboardingPhase.CONVERSATION_PARTNERS)
        partner = self._coerce(ConversationPartner, partner, "selected_partners", "Unknown conversation partner")

        if partner in self._answers.selected_partners:
            self._answers.remove_partner(partner)
        else:
            self._answers.selected_partners.add(partner)
        self._last_error = None

    async def continue_from_partner_selection(self) -> None:
        """Persist selected partners and start collecting situations per partner."""
        async with self._operation("continue_from_partner_selection"):
            self._require("continue_from_partner_selection", OnboardingPhase.CONVERSATION_PARTNERS)

            partners = self._answers.sorted_partners
            if not partners:
                raise ValidationError(
                    "selected_partners", "Please select at least one person you speak English with"
                )

            if self._selection_store is not None:
                await self._call("save_partners", self._selection_store.save_partners(partners))

            self._answers.partner_situations = []
            self._answers.current_partner_index = 0
            self._answers.current_situations = set()
            self._advance(OnboardingPhase.CONVERSATION_SITUATIONS)

    def toggle_situation(self, situation: Situation | str) -> None:
        """Add or remove a situation for the partner at the cursor."""
        self._reject_while_busy()
        self._require("toggle_situation", OnboardingPhase.CONVERSATION_SITUATIONS)
        situation = self._coerce(Situation, situation, "situations", "Unknown situation")

        current = self._answers.current_situations
        if situation in current:
            current.discard(situation)
        else:
            current.add(situation)
        self._last_error = None

    async def continue_from_situation_selection(self) -> None:
        """
        Record situations for the current partner and move to the next one.

        Re-submitting a partner replaces its entry. After the last partner
        the phase moves to phase2_complete.
        """
        async with self._operation("continue_from_situation_selection"):
            self._require("continue_from_situation_selection", OnboardingPhase.CONVERSATION_SITUATIONS)

            partner = self.current_partner
            if partner is None:
                raise InvalidTransitionError("continue_from_situation_selection", self._phase.value)
            situations = set(self._answers.current_situations)
            if not situations:
                raise ValidationError(
                    "situations",
                    f"Please select at least one situation with {partner.value.lower()}",
                )

            if self._selection_store is not None:
                ordered = [s for s in Situation if s in situations]
                await self._call(
                    "save_partner_situations",
                    self._selection_store.save_partner_situations(partner, ordered),
                )

            self._answers.upsert_partner_situations(partner, situations)
            self._answers.current_partner_index += 1

            if self._answers.current_partner_index >= len(self._answers.selected_partners):
                self._answers.current_situations = set()
                self._advance(OnboardingPhase.PHASE2_COMPLETE)
            else:
                self._load_situations_for_cursor()

    def previous_situation_partner(self) -> None:
        """Go back to the previous partner's situations. No-op on the first partner."""
        self._reject_while_busy()
        self._require("previous_situation_partner", OnboardingPhase.CONVERSATION_SITUATIONS)

        if self._answers.current_partner_index > 0:
            self._answers.current_partner_index -= 1
            self._load_situations_for_cursor()
        self._last_error = None

    def _load_situations_for_cursor(self) -> None:
        partner = self.current_partner
        entry = self._answers.situations_for(partner) if partner else None
        self._answers.current_situations = set(entry.situations) if entry else set()

    # =========================================================================
    # Course Recommendation & Completion
    # =========================================================================

    async def continue_from_phase2_complete(self) -> CourseRecommendation:
        """Fetch course recommendations for the collected role and needs."""
        async with self._operation("continue_from_phase2_complete"):
            self._require("continue_from_phase2_complete", OnboardingPhase.PHASE2_COMPLETE)

            if self._course_recommender is None:
                logger.info("No course recommender configured, continuing without courses")
                recommendation = CourseRecommendation()
            else:
                selected = self._answers.selected_role
                request = CourseRecommendationRequest(
                    role_id=selected.id if selected else None,
                    industry=self._answers.industry,
                    identified_needs=identified_needs(self._answers),
                    native_language=self._answers.native_language,
                )
                recommendation = await self._call(
                    "recommend_courses", self._course_recommender.recommend_courses(request)
                )

            self._answers.course_recommendation = recommendation
            self._answers.selected_course = None
            logger.info(
                f"Received {len(recommendation.courses)} course(s)"
                + (" (custom courses in progress)" if recommendation.custom_courses_being_generated else "")
            )
            return recommendation

    def select_course(self, course_id: str) -> None:
        """Pick one of the recommended courses and complete onboarding."""
        self._reject_while_busy()
        self._require("select_course", OnboardingPhase.PHASE2_COMPLETE)
        recommendation = self._require_recommendation()

        course = recommendation.find_course(course_id)
        if course is None:
            self._fail(ValidationError("selected_course", "Please choose one of the recommended courses"))

        self._answers.selected_course = course
        self._advance(OnboardingPhase.ONBOARDING_COMPLETE)

    def acknowledge_no_courses(self) -> None:
        """Complete onboarding without a course (none yet, or custom ones pending)."""
        self._reject_while_busy()
        self._require("acknowledge_no_courses", OnboardingPhase.PHASE2_COMPLETE)
        recommendation = self._require_recommendation()

        if recommendation.courses:
            self._fail(ValidationError("selected_course", "Please choose one of the recommended courses"))

        self._answers.selected_course = None
        self._advance(OnboardingPhase.ONBOARDING_COMPLETE)

    async def finish(self) -> OnboardingSummary | None:
        """
        Submit the summary and hand off to the app.

        Sessions resumed from a server status may not hold every answer
        locally; those complete and hand off with a None summary.
        """
        async with self._operation("finish"):
            self._require("finish", OnboardingPhase.ONBOARDING_COMPLETE)

            summary = None
            if self._answers.is_basic_info_complete and self._answers.is_conversation_complete:
                summary = build_summary(self._answers)

            if self._selection_store is not None:
                await self._call("complete_onboarding", self._selection_store.complete_onboarding(summary))

            if summary is not None:
                logger.info(f"Onboarding complete: {describe_summary(summary)}")
            else:
                logger.info("Onboarding complete (resumed session, no local summary)")

            self._finished = True
            if self._on_finish is not None:
                self._on_finish(summary)
            return summary

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def restart(self) -> None:
        """Abandon the current run and start over from welcome."""
        self._reject_while_busy()
        logger.info(f"Onboarding restarted from {self._phase.value}")
        self._reset()

    def restore(self, status: str | None) -> OnboardingPhase:
        """
        Resume at the phase matching a server-reported onboarding status.

        Answers from earlier phases stay server-side. A status of completed
        marks the session finished without a hand-off.
        """
        self._reject_while_busy()
        self._reset()
        phase = phase_from_status(status)

        # Situations are collected per locally known partner
        if phase == OnboardingPhase.CONVERSATION_SITUATIONS:
            phase = OnboardingPhase.CONVERSATION_PARTNERS

        self._phase = phase
        self._finished = phase == OnboardingPhase.ONBOARDING_COMPLETE
        logger.info(f"Onboarding restored at {phase.value} (status '{status}')")
        return phase

    # =========================================================================
    # Internals
    # =========================================================================

    def _advance(self, phase: OnboardingPhase) -> None:
        logger.info(f"Onboarding phase: {self._phase.value} -> {phase.value}")
        self._phase = phase
        self._last_error = None

    def _set_step(self, step: BasicInfoStep) -> None:
        logger.debug(f"Basic info step: {self._step.value} -> {step.value}")
        self._step = step
        self._last_error = None

    def _fail(self, error: OnboardingError) -> NoReturn:
        self._last_error = error
        logger.warning(f"Onboarding {self._phase.value}: {error.message}")
        raise error

    def _require(self, operation: str, phase: OnboardingPhase, step: BasicInfoStep | None = None) -> None:
        if self._phase != phase:
            self._fail(InvalidTransitionError(operation, self._phase.value))
        if step is not None and self._step != step:
            self._fail(InvalidTransitionError(operation, f"{self._phase.value}/{self._step.value}"))

    def _require_recommendation(self) -> CourseRecommendation:
        recommendation = self._answers.course_recommendation
        if recommendation is None:
            self._fail(ValidationError("course_recommendation", "Course recommendations are not ready yet"))
        return recommendation

    def _reject_while_busy(self) -> None:
        """One operation at a time: nothing may change state while a collaborator call is pending."""
        for operation, status in self._operations.items():
            if isinstance(status, InFlight):
                self._fail(OperationInProgressError(operation))

    def _coerce(self, enum_cls: type[E], value: Any, field: str, message: str) -> E:
        try:
            return _coerce(enum_cls, value, field, message)
        except ValidationError as e:
            self._fail(e)

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """
        Guard one async operation.

        Rejects the call while any operation is in flight, and records
        the outcome as Idle or Failed(error).
        """
        self._reject_while_busy()
        self._operations[name] = InFlight()
        try:
            yield
        except OnboardingError as e:
            self._operations[name] = Failed(e)
            self._last_error = e
            if isinstance(e, CollaboratorError):
                logger.error(f"{name} failed: {e.message}")
            else:
                logger.warning(f"{name} rejected: {e.message}")
            raise
        except BaseException:
            self._operations[name] = Idle()
            raise
        else:
            self._operations[name] = Idle()
            self._last_error = None

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a collaborator with the session timeout, mapping failures to CollaboratorError."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CollaboratorTimeoutError(operation, self.timeout)
        except OnboardingError:
            raise
        except Exception as e:
            raise CollaboratorError(f"Something went wrong ({operation}), please try again") from e


def _coerce(enum_cls: type[E], value: Any, field: str, message: str) -> E:
    """Accept an enum member or its value; anything else is a ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(field, message)
