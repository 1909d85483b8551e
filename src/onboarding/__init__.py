"""
FluentPro Onboarding System.

Isolated module for new learner setup. Walks the user through a phased flow
and hands a structured summary to the rest of the product.

Phases:
1. Basic Info - Native language, industry, role (matched or custom)
2. Conversations - Who the user speaks English with, and in which situations
3. Courses - Recommendation and selection, then hand-off to the app

The HTTP router lives in onboarding.api and is mounted by fluentpro.web.
"""

from .errors import OnboardingError
from .payload import OnboardingSummary
from .session import OnboardingSession
from .state import BasicInfoStep, OnboardingAnswers, OnboardingPhase

__all__ = [
    "OnboardingSession",
    "OnboardingPhase",
    "BasicInfoStep",
    "OnboardingAnswers",
    "OnboardingSummary",
    "OnboardingError",
]
