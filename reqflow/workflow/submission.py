"""
Request submission.

Turns structured intake data into a new request: impact scoring and routing
are generated concurrently, and the request is only assembled once both
have resolved. Neither generated answer is trusted. A bad score leaves the
request unassessed; a bad routing answer falls back to configured defaults.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Optional

from reqflow.agents.generation import GenerationClient
from reqflow.agents.stream import ParseError
from reqflow.lib.config import RoutingConfig
from reqflow.lib.impact import assessment_from_generation
from reqflow.lib.models import (
    ActivityItem,
    ImpactAssessment,
    Request,
    RoutingInfo,
    Stage,
    format_timestamp,
    utc_now,
)
from reqflow.lib.prompts import render_prompt
from reqflow.lib.validate import ValidationError
from reqflow.workflow.store import RequestStore

logger = logging.getLogger(__name__)

ROUTING_AGENT = "AI Agent"
DEFAULT_TITLE = "New Request"
ROUTING_MAX_TOKENS = 1000
SCORING_MAX_TOKENS = 1500


async def score_request(
    generation: GenerationClient,
    data: dict,
    now: datetime,
    strict_sum: bool = False,
) -> Optional[ImpactAssessment]:
    """Generate a tier 1 assessment, or None if the answer is unusable."""
    prompt = render_prompt("impact_score", request_json=json.dumps(data, indent=2))
    try:
        answer = await generation.complete_json(prompt, schema_name="impact_score", max_tokens=SCORING_MAX_TOKENS)
        return assessment_from_generation(answer, now=now, strict_sum=strict_sum)
    except (ParseError, ValidationError) as e:
        logger.warning(f"[SUBMIT] Impact scoring unusable, request left unassessed: {e}")
        return None


async def route_request(generation: GenerationClient, data: dict, defaults: RoutingConfig) -> RoutingInfo:
    """Generate a routing decision, falling back to defaults if it can't be parsed."""
    prompt = render_prompt("routing", request_json=json.dumps(data, indent=2))
    try:
        answer = await generation.complete_json(prompt, schema_name="routing", max_tokens=ROUTING_MAX_TOKENS)
        return RoutingInfo.from_dict(answer)
    except ParseError as e:
        logger.warning(f"[SUBMIT] Routing unusable, using defaults: {e}")
        return RoutingInfo(
            owner=defaults.default_owner,
            type="",
            complexity=defaults.default_complexity,
            timeline="",
            priority=defaults.default_priority,
        )


async def submit_request(
    store: RequestStore,
    generation: GenerationClient,
    data: dict,
    submitted_by: str,
    now: Optional[datetime] = None,
    routing_defaults: Optional[RoutingConfig] = None,
) -> Request:
    """Score, route and create a new request.

    Args:
        data: Intake data (title, problem, success, systems, urgency, stakeholders)
        submitted_by: Display name of the requester

    Raises:
        GenerationError: Transport failure talking to the generation service
        NetworkError: The create failed (already rolled back by the store)
    """
    now = now or utc_now()
    assessment, routing = await asyncio.gather(
        score_request(generation, data, now, strict_sum=store.strict_sum),
        route_request(generation, data, routing_defaults or RoutingConfig()),
    )

    stamp = format_timestamp(now)
    request = Request(
        id=store.next_request_id(),
        title=(data.get("title") or "").strip() or DEFAULT_TITLE,
        stage=Stage.SCOPING,
        owner=routing.owner,
        priority=routing.priority,
        submitted_by=submitted_by,
        complexity=routing.complexity,
        created_at=now,
        timeline=routing.timeline or None,
        last_update=stamp,
        activity=[
            ActivityItem(timestamp=stamp, action="Request submitted", user=submitted_by),
            ActivityItem(timestamp=stamp, action=f"Auto-routed to {routing.owner}", user=ROUTING_AGENT),
        ],
        impact_assessment=assessment,
    )

    logger.info(f"[SUBMIT] {request.id} routed to {routing.owner} ({routing.priority.value})")
    return await store.create(request)
