"""
Pytest configuration and fixtures for FluentPro tests.
"""

import os
import pytest
from unittest.mock import AsyncMock, MagicMock

# Set test environment before importing fluentpro modules
os.environ["FLUENTPRO_ENV"] = "development"
os.environ["FLUENTPRO_API_BASE_URL"] = "https://api.test.fluentpro.com/v1"

from onboarding.collaborators import CourseRecommender, RoleMatcher, SelectionStore
from onboarding.session import OnboardingSession
from onboarding.state import Course, CourseRecommendation, RoleCandidate


@pytest.fixture
def sample_candidates():
    """Role matcher output, best first."""
    return [
        RoleCandidate(
            id="role-1",
            title="Relationship Manager",
            description="Manages a portfolio of corporate banking clients",
            industry="Banking & Finance",
            common_tasks=("Client meetings", "Portfolio reviews"),
            confidence_score=0.92,
        ),
        RoleCandidate(
            id="role-2",
            title="Credit Analyst",
            description="Assesses creditworthiness of loan applicants",
            industry="Banking & Finance",
            common_tasks=("Financial analysis",),
            confidence_score=0.71,
        ),
        RoleCandidate(
            id="role-3",
            title="Branch Manager",
            description="Runs day-to-day operations of a retail branch",
            industry="Banking & Finance",
            confidence_score=0.40,
        ),
    ]


@pytest.fixture
def sample_courses():
    return [
        Course(
            id="course-1",
            name="Client Meetings in Banking",
            description="Lead confident meetings with corporate clients",
            level="Intermediate",
            estimated_duration="4 weeks",
            rating=4.7,
            functional_language=("Opening a meeting", "Summarising next steps"),
        ),
        Course(
            id="course-2",
            name="Phone Calls with Colleagues",
            level="Beginner",
            estimated_duration="2 weeks",
            rating=4.2,
        ),
    ]


@pytest.fixture
def mock_matcher(sample_candidates):
    """RoleMatcher returning the sample candidates."""
    matcher = AsyncMock(spec=RoleMatcher)
    matcher.match_roles.return_value = sample_candidates
    return matcher


@pytest.fixture
def mock_recommender(sample_courses):
    recommender = AsyncMock(spec=CourseRecommender)
    recommender.recommend_courses.return_value = CourseRecommendation(courses=sample_courses)
    return recommender


@pytest.fixture
def mock_store():
    """SelectionStore that accepts everything."""
    return AsyncMock(spec=SelectionStore)


@pytest.fixture
def on_finish():
    return MagicMock()


@pytest.fixture
def session(mock_matcher, mock_recommender, mock_store, on_finish):
    """Fresh session at the welcome phase."""
    return OnboardingSession(
        role_matcher=mock_matcher,
        course_recommender=mock_recommender,
        selection_store=mock_store,
        on_finish=on_finish,
        timeout=5.0,
    )
