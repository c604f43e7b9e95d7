"""Shared fixtures: an in-memory persistence collaborator and request factories."""

import asyncio
from datetime import datetime, timezone

import pytest

from reqflow.agents.persistence import NetworkError
from reqflow.lib.models import (
    ActivityItem,
    Actor,
    Complexity,
    DocType,
    DocumentApproval,
    GeneratedDocs,
    ImpactAssessment,
    ImpactBreakdown,
    Priority,
    Request,
    Role,
    Stage,
)
from reqflow.workflow.store import RequestStore

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakePersistence:
    """In-memory stand-in for PersistenceClient.

    Set fail=True to make every write raise NetworkError, or add ids to
    fail_ids to fail only writes to those requests. Set hold to an
    asyncio.Event to make writes wait until it is set.
    """

    def __init__(self, requests=None):
        self.records = {r.id: r.to_dict() for r in requests or []}
        self.fail = False
        self.fail_ids = set()
        self.hold = None
        self.patches = []
        self.created = []
        self.closed = False

    async def list(self):
        return [Request.from_dict(data) for data in self.records.values()]

    async def create(self, request):
        if self.hold is not None:
            await self.hold.wait()
        if self.fail or request.id in self.fail_ids:
            raise NetworkError("create", "HTTP 503", 503)
        self.created.append(request)
        self.records[request.id] = request.to_dict()
        return request

    async def patch(self, request_id, partial):
        if self.hold is not None:
            await self.hold.wait()
        if self.fail or request_id in self.fail_ids:
            raise NetworkError("patch", "HTTP 503", 503)
        self.patches.append((request_id, partial))
        self.records.setdefault(request_id, {}).update(partial)

    async def aclose(self):
        self.closed = True


def build_request(**overrides) -> Request:
    fields = dict(
        id="REQ-001",
        title="Pipeline dashboard",
        stage=Stage.SCOPING,
        owner="Sarah Chen",
        priority=Priority.MEDIUM,
        submitted_by="Jessica Martinez",
        complexity=Complexity.MEDIUM,
        created_at=NOW,
        activity=[ActivityItem(timestamp="2026-03-10T12:00:00Z", action="Request submitted", user="Jessica Martinez")],
    )
    fields.update(overrides)
    return Request(**fields)


def build_assessment(total=None, tier=1, **scores) -> ImpactAssessment:
    breakdown = ImpactBreakdown(**{
        "revenue_impact": 20,
        "user_reach": 15,
        "strategic_alignment": 10,
        "urgency": 10,
        "quick_win_bonus": 5,
        **scores,
    })
    return ImpactAssessment(
        total_score=breakdown.total() if total is None else total,
        breakdown=breakdown,
        tier=tier,
        assessed_at="2026-03-10T12:00:00Z",
        assessed_by="AI",
        justification="Saves the sales team an hour a day",
    )


def build_documents(approved=()) -> GeneratedDocs:
    return GeneratedDocs(
        contents={doc_type: f"## {doc_type.value}" for doc_type in DocType},
        approvals={
            doc_type: DocumentApproval(approved=doc_type in approved, approver="Pat" if doc_type in approved else None)
            for doc_type in DocType
        },
    )


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def make_assessment():
    return build_assessment


@pytest.fixture
def make_documents():
    return build_documents


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def product_owner():
    return Actor(name="Pat Owner", role=Role.PRODUCT_OWNER)


@pytest.fixture
def dev():
    return Actor(name="Mike Torres", role=Role.DEV)


@pytest.fixture
def requester():
    return Actor(name="Jessica Martinez", role=Role.REQUESTER)


@pytest.fixture
def make_store():
    """Factory: (store, persistence) seeded with the given requests."""

    def factory(*requests, strict_sum=False):
        persistence = FakePersistence(requests)
        store = RequestStore(persistence, requests=list(requests), strict_sum=strict_sum, clock=lambda: NOW)
        return store, persistence

    return factory


@pytest.fixture
def run():
    """Run a coroutine to completion."""
    return asyncio.run


@pytest.fixture
def fake_persistence():
    """The FakePersistence class, for tests that wire their own AppState."""
    return FakePersistence
