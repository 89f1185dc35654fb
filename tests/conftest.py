import pytest

from onboarding_flow.definition import QuestionnaireDefinition
from onboarding_flow.draft_store import DraftStore
from onboarding_flow.graph import StepGraph
from onboarding_flow.scheduler import ManualScheduler

from helpers.fakes import FakeSessionClient, FlakyBackend

# Answers that complete the bundled questionnaire on its default path
# (primary goal without a race, so no race steps are shown).
COMPLETE_ANSWERS = {
    "email": "runner@example.com",
    "first_name": "Martin",
    "last_name": "Claire",
    "birth_date": "1990-04-12",
    "gender": "female",
    "height_cm": 168,
    "weight_kg": 60,
    "primary_goal": "entretenir",
    "current_weekly_volume_km": 15,
    "current_runs_per_week": "1_2",
    "available_days": ["monday", "thursday"],
    "running_experience_period": "1_10_ans",
    "training_locations": ["route"],
}


@pytest.fixture(scope="session")
def definition():
    return QuestionnaireDefinition().load()


@pytest.fixture(scope="session")
def graph(definition):
    return StepGraph(definition)


@pytest.fixture
def complete_answers():
    return dict(COMPLETE_ANSWERS)


@pytest.fixture
def backend():
    return FlakyBackend()


@pytest.fixture
def store(backend):
    return DraftStore(backend)


@pytest.fixture
def client():
    return FakeSessionClient()


@pytest.fixture
def scheduler():
    return ManualScheduler()
