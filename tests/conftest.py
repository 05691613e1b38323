from datetime import date

import pytest

import equiflow.persistence as persistence
from equiflow.config import EquiflowConfig
from equiflow.contracts import Horse, RoutineStep, RoutineTemplate
from equiflow.persistence import InMemoryRoutineRepository

STABLE_ID = "stable-1"
ORG_ID = "org-1"
DAY = date(2024, 5, 1)


@pytest.fixture(autouse=True)
def _reset_repository_singleton(monkeypatch):
    monkeypatch.delenv("EQUIFLOW_CONFIG", raising=False)
    monkeypatch.delenv("EQUIFLOW_API_URL", raising=False)
    monkeypatch.delenv("EQUIFLOW_API_TOKEN", raising=False)
    monkeypatch.delenv("EQUIFLOW_BACKEND", raising=False)
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture
def config() -> EquiflowConfig:
    return EquiflowConfig()


@pytest.fixture
def horses() -> list[Horse]:
    return [
        Horse(id="h1", name="Blixt", current_stable_id=STABLE_ID, horse_group_id="g1"),
        Horse(id="h2", name="Stjärna", current_stable_id=STABLE_ID, horse_group_id="g2"),
    ]


@pytest.fixture
def two_step_template() -> RoutineTemplate:
    return RoutineTemplate(
        id="tpl-1",
        organization_id=ORG_ID,
        name="Morgonpass",
        steps=[
            RoutineStep(id="feed", order=1, name="Morgonfodring", horse_context="all"),
            RoutineStep(id="water", order=2, name="Vattencheck", horse_context="none"),
        ],
    )


@pytest.fixture
def repo(horses, two_step_template) -> InMemoryRoutineRepository:
    repository = InMemoryRoutineRepository(actor="user-1")
    repository.add_horses(horses)
    repository.add_template(two_step_template)
    repository.schedule_instance("tpl-1", STABLE_ID, DAY, instance_id="inst-1")
    return repository
