"""Prefect flows for the generation-heavy operations.

Submission and document generation each make several slow generation calls.
Running them as flows gives run history and observability when connected
to a Prefect server. The business logic stays in submission.py and
documents.py; these wrappers only load state and hand off.
"""

import logging
from pathlib import Path
from typing import Optional

from prefect import flow, task
from prefect.cache_policies import NO_CACHE
from pydantic import BaseModel, Field

from reqflow.app import AppState
from reqflow.lib.config import load_config
from reqflow.lib.models import Actor, Role, UserMode

logger = logging.getLogger(__name__)


class SubmissionInput(BaseModel):
    """Input schema for a new request."""
    title: str
    submitted_by: str
    problem: str = ""
    success: str = ""
    systems: list[str] = Field(default_factory=list)
    urgency: str = "medium"
    stakeholders: list[str] = Field(default_factory=list)

    def intake_data(self) -> dict:
        """The fields sent to scoring and routing."""
        return self.model_dump(exclude={"submitted_by"})


class GenerationInput(BaseModel):
    """Input schema for document generation."""
    request_id: str
    user: str
    mode: UserMode = UserMode.COLLABORATIVE


@task(
    retries=2,
    cache_policy=NO_CACHE,
    retry_delay_seconds=5,
    name="load-requests",
    description="Fetch the request collection from persistence"
)
async def task_load_requests(app: AppState):
    """Load with retries. Reads are idempotent, so retrying is safe."""
    return await app.store.load()


@task(
    retries=0,
    cache_policy=NO_CACHE,
    name="submit-request",
    description="Score, route and create a request"
)
async def task_submit(app: AppState, submission: SubmissionInput):
    """No retries: every attempt is a billed generation call and a new request id."""
    return await app.submit(submission.intake_data(), submission.submitted_by)


@task(
    retries=0,
    cache_policy=NO_CACHE,
    name="generate-documents",
    description="Generate BRD, FSD and technical spec"
)
async def task_generate_documents(app: AppState, generation_input: GenerationInput):
    actor = Actor(name=generation_input.user, role=Role.PRODUCT_OWNER)
    return await app.documents.generate(generation_input.request_id, actor, mode=generation_input.mode)


@flow(name="submit-request-flow", retries=0)
async def submit_request_flow(submission: SubmissionInput, config_path: Optional[str] = None) -> dict:
    app = AppState.from_config(load_config(Path(config_path) if config_path else None))
    try:
        await task_load_requests(app)
        request = await task_submit(app, submission)
    finally:
        await app.aclose()
    logger.info(f"Submitted {request.id}")
    return request.to_dict()


@flow(name="generate-documents-flow", retries=0)
async def generate_documents_flow(generation_input: GenerationInput, config_path: Optional[str] = None) -> dict:
    app = AppState.from_config(load_config(Path(config_path) if config_path else None))
    try:
        await task_load_requests(app)
        request = await task_generate_documents(app, generation_input)
    finally:
        await app.aclose()
    logger.info(f"Generated documents for {request.id}")
    return request.to_dict()
