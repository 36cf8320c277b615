"""Pytest configuration and shared fixtures."""

import pytest

from lostfound.core.routing.directory import InMemoryApproverDirectory
from lostfound.core.routing.engine import RoutingEngine
from lostfound.core.workflow.service import WorkflowService
from lostfound.core.workflow.store import InMemoryRequestStore
from lostfound.services.notifications import TransitionNotifier

from tests.factories import FixedClock, RecordingSubscriber, standard_approvers


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def directory():
    """Directory holding every role used by the request chains."""
    return InMemoryApproverDirectory(standard_approvers())


@pytest.fixture
def routing(directory):
    return RoutingEngine(directory)


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def recorder():
    return RecordingSubscriber()


@pytest.fixture
def notifier(recorder):
    notifier = TransitionNotifier()
    notifier.subscribe(recorder)
    return notifier


@pytest.fixture
def service(store, routing, notifier, clock):
    """In-memory workflow service with a controllable clock."""
    return WorkflowService(store, routing, notifier=notifier, clock=clock)


@pytest.fixture
def sample_config():
    """Sample YAML configuration dictionary."""
    return {
        "routing": {"allow_scope_fallback": True},
        "sla": {"approaching_threshold_hours": 3},
        "approvers": [
            {
                "id": "coord-1",
                "name": "Campus Coordinator",
                "role": "campus_coordinator",
                "organization_id": "campus-a",
            },
            {
                "id": "police-1",
                "name": "Evidence Officer",
                "role": "POLICE_EVIDENCE_CUSTODIAN",
                "email": "evidence@example.com",
                "active": False,
            },
        ],
    }
