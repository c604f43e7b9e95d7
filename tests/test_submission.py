"""Tests for reqflow.workflow.submission module."""

import asyncio
import json

import pytest

from reqflow.agents.stream import GenerationError, ParseError
from reqflow.lib.config import RoutingConfig
from reqflow.lib.models import Complexity, Priority, Stage
from reqflow.workflow.submission import submit_request

ROUTING = {"owner": "Mike Torres", "type": "automation", "complexity": "simple", "timeline": "3 days", "priority": "High"}
SCORE = {
    "totalScore": 72,
    "breakdown": {"revenueImpact": 25, "userReach": 20, "strategicAlignment": 12, "urgency": 10, "quickWinBonus": 5},
    "justification": "Removes manual lead assignment",
}
INTAKE = {"title": "Auto-assign leads", "problem": "Manual assignment", "urgency": "high"}


class FakeGeneration:
    """Answers by schema name. A value that is an exception is raised instead."""

    def __init__(self, routing=ROUTING, score=SCORE):
        self.answers = {"routing": routing, "impact_score": score}
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete_json(self, prompt, schema_name=None, max_tokens=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        answer = self.answers[schema_name]
        if isinstance(answer, Exception):
            raise answer
        return json.loads(json.dumps(answer))


class TestSubmitRequest:

    def test_creates_scored_routed_request(self, make_store, make_request, now, run):
        store, persistence = make_store(make_request(id="REQ-004"))
        generation = FakeGeneration()

        request = run(submit_request(store, generation, INTAKE, "Tom Wilson", now=now))

        assert request.id == "REQ-005"
        assert request.stage == Stage.SCOPING
        assert request.owner == "Mike Torres"
        assert request.priority == Priority.HIGH
        assert request.complexity == Complexity.SIMPLE
        assert request.submitted_by == "Tom Wilson"
        assert request.impact_assessment.tier == 1
        assert request.impact_assessment.total_score == 72
        assert [a.action for a in request.activity] == ["Request submitted", "Auto-routed to Mike Torres"]
        assert store.requests[0] is request
        assert persistence.created == [request]

    def test_scoring_and_routing_run_concurrently(self, make_store, now, run):
        store, _ = make_store()
        generation = FakeGeneration()
        run(submit_request(store, generation, INTAKE, "Tom Wilson", now=now))
        assert generation.max_in_flight == 2

    def test_bad_score_leaves_unassessed(self, make_store, now, run):
        store, _ = make_store()
        generation = FakeGeneration(score=ParseError("Generated output is not valid JSON"))
        request = run(submit_request(store, generation, INTAKE, "Tom Wilson", now=now))
        assert request.impact_assessment is None
        assert request.owner == "Mike Torres"

    def test_out_of_range_score_leaves_unassessed(self, make_store, now, run):
        score = dict(SCORE, breakdown=dict(SCORE["breakdown"], revenueImpact=90))
        store, _ = make_store()
        request = run(submit_request(store, FakeGeneration(score=score), INTAKE, "Tom Wilson", now=now))
        assert request.impact_assessment is None

    def test_bad_routing_uses_defaults(self, make_store, now, run):
        store, _ = make_store()
        generation = FakeGeneration(routing=ParseError("Generated output failed validation"))
        defaults = RoutingConfig(default_owner="Triage Queue", default_priority=Priority.LOW)
        request = run(submit_request(store, generation, INTAKE, "Tom Wilson", now=now, routing_defaults=defaults))
        assert request.owner == "Triage Queue"
        assert request.priority == Priority.LOW
        assert request.complexity == Complexity.MEDIUM
        assert request.activity[-1].action == "Auto-routed to Triage Queue"

    def test_transport_failure_propagates(self, make_store, now, run):
        store, _ = make_store()
        generation = FakeGeneration(routing=GenerationError("Generation request failed"))
        with pytest.raises(GenerationError):
            run(submit_request(store, generation, INTAKE, "Tom Wilson", now=now))
        assert store.requests == []

    def test_blank_title(self, make_store, now, run):
        store, _ = make_store()
        request = run(submit_request(store, FakeGeneration(), {"title": "  "}, "Tom Wilson", now=now))
        assert request.title == "New Request"
