import pytest

from onboarding_flow.engine import FlowController
from onboarding_flow.registry import SchemaRegistry

from helpers.fakes import FIXED_NOW, MockPersistence, RecordingPresenter


@pytest.fixture(scope="session")
def registry():
    reg = SchemaRegistry()
    reg.load()
    return reg


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def persistence():
    return MockPersistence()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def controller(registry, presenter, persistence, clock):
    return FlowController(
        registry, presenter, user_id="u1", persistence=persistence, clock=clock,
    )
