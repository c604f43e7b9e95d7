"""Request store with optimistic mutations.

Holds the in-process request collection and the selected request. Every
change follows the same protocol:

1. Build the new version (permission/validation errors raise here, state untouched)
2. Remember the current version of that request, apply the new one locally
3. Await the persistence call
4. Success: done. Failure or cancellation: put that one request back, re-raise

Mutations on the same request are serialized with a per-request lock, so
no second change can interleave between an optimistic write and its
commit or rollback.

Known gap: persistence gets no version token, so two sessions editing the
same request overwrite each other (last write wins).
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Callable, Optional

from reqflow.agents.persistence import NetworkError, PersistenceClient
from reqflow.lib.impact import validate_assessment
from reqflow.lib.models import (
    Actor,
    DocType,
    GeneratedDocs,
    ImpactAssessment,
    Request,
    Stage,
    format_timestamp,
    utc_now,
)
from reqflow.workflow.mutations import (
    AdjustImpact,
    ApproveDocument,
    AttachDocuments,
    DismissAlert,
    Mutation,
    StageChange,
    UpdateDocument,
)

logger = logging.getLogger(__name__)

REQUEST_ID_PATTERN = re.compile(r'^REQ-(\d+)$')


class RequestNotFound(KeyError):
    """No request with the given id in the store."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")

    def __str__(self) -> str:
        return self.args[0]


class RequestStore:
    """Authoritative in-process request collection."""

    def __init__(
        self,
        persistence: PersistenceClient,
        requests: Optional[list[Request]] = None,
        strict_sum: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.persistence = persistence
        self.strict_sum = strict_sum
        self.clock = clock
        self._requests: list[Request] = list(requests or [])
        self._selected: Optional[Request] = None
        self._locks: dict[str, asyncio.Lock] = {}

    # --- reads -------------------------------------------------------------

    @property
    def requests(self) -> list[Request]:
        return list(self._requests)

    @property
    def selected(self) -> Optional[Request]:
        return self._selected

    def get(self, request_id: str) -> Request:
        for request in self._requests:
            if request.id == request_id:
                return request
        raise RequestNotFound(request_id)

    def select(self, request_id: str) -> Request:
        self._selected = self.get(request_id)
        return self._selected

    def clear_selection(self) -> None:
        self._selected = None

    def next_request_id(self) -> str:
        """REQ-NNN, one past the highest numbered request."""
        highest = 0
        for request in self._requests:
            match = REQUEST_ID_PATTERN.match(request.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"REQ-{highest + 1:03d}"

    async def load(self) -> list[Request]:
        """Replace the collection with what persistence holds."""
        self._requests = await self.persistence.list()
        if self._selected is not None:
            self._selected = next((r for r in self._requests if r.id == self._selected.id), None)
        logger.info(f"[STORE] Loaded {len(self._requests)} request(s)")
        return self.requests

    # --- mutation protocol -------------------------------------------------

    def _lock_for(self, request_id: str) -> asyncio.Lock:
        if request_id not in self._locks:
            self._locks[request_id] = asyncio.Lock()
        return self._locks[request_id]

    def _restore(self, previous: Request) -> Callable[[], None]:
        """Compensation that puts previous back in place of the version held now.

        Only that one request is touched; other requests committed meanwhile stay as they are.
        """

        def compensate() -> None:
            self._requests = [previous if r.id == previous.id else r for r in self._requests]
            if self._selected is not None and self._selected.id == previous.id:
                self._selected = previous

        return compensate

    def _discard(self, request_id: str) -> Callable[[], None]:
        """Compensation that removes an optimistically added request again."""

        def compensate() -> None:
            self._requests = [r for r in self._requests if r.id != request_id]
            if self._selected is not None and self._selected.id == request_id:
                self._selected = None

        return compensate

    def _put(self, updated: Request) -> None:
        self._requests = [updated if r.id == updated.id else r for r in self._requests]
        if self._selected is not None and self._selected.id == updated.id:
            self._selected = updated

    async def execute(self, mutation: Mutation) -> Request:
        """Run one mutation through the optimistic protocol.

        Returns:
            The request as it stands after the mutation

        Raises:
            RequestNotFound: Unknown request id
            PermissionDenied / InvalidTransition / ValidationError: From build(), nothing applied
            NetworkError: Persistence failed, local state rolled back
        """
        async with self._lock_for(mutation.request_id):
            current = self.get(mutation.request_id)
            updated = mutation.build(current, self.clock())
            if updated is None:
                logger.debug(f"[STORE] {mutation.label} on {current.id}: no change")
                return current

            compensate = self._restore(current)
            self._put(updated)

            try:
                await self.persistence.patch(current.id, mutation.payload(updated))
            except (NetworkError, asyncio.CancelledError) as e:
                compensate()
                logger.warning(f"[STORE] {mutation.label} on {current.id} rolled back: {str(e) or type(e).__name__}")
                raise

            return updated

    # --- operations --------------------------------------------------------

    async def create(self, request: Request) -> Request:
        """Add a new request optimistically; removed again if persistence fails.

        New requests enter at Scoping. A missing createdAt is stamped now.
        """
        if any(r.id == request.id for r in self._requests):
            raise ValueError(f"Request {request.id} already exists")
        if request.impact_assessment is not None:
            validate_assessment(request.impact_assessment.to_dict(), strict_sum=self.strict_sum)

        now = self.clock()
        changes = {}
        if request.stage == Stage.INTAKE:
            changes["stage"] = Stage.SCOPING
        if request.created_at is None:
            changes["created_at"] = now
        if request.last_update is None:
            changes["last_update"] = format_timestamp(now)
        if changes:
            request = request.evolve(**changes)

        async with self._lock_for(request.id):
            compensate = self._discard(request.id)
            self._requests = [request, *self._requests]
            try:
                await self.persistence.create(request)
            except (NetworkError, asyncio.CancelledError) as e:
                compensate()
                logger.warning(f"[STORE] create of {request.id} rolled back: {str(e) or type(e).__name__}")
                raise

        logger.info(f"[STORE] Created {request.id} ({request.stage.value}, owner {request.owner})")
        return request

    async def update_stage(self, request_id: str, new_stage: Stage, note: str, actor: Actor) -> Request:
        """Move a request to new_stage as actor. One activity entry is appended."""
        return await self.execute(StageChange(request_id, new_stage, note, actor))

    async def dismiss_alert(self, request_id: str) -> Request:
        return await self.execute(DismissAlert(request_id))

    async def adjust_impact_score(self, request_id: str, assessment: ImpactAssessment, actor: Actor) -> Request:
        return await self.execute(AdjustImpact(request_id, assessment, actor, strict_sum=self.strict_sum))

    async def attach_documents(self, request_id: str, documents: GeneratedDocs, actor: Actor) -> Request:
        return await self.execute(AttachDocuments(request_id, documents, actor))

    async def approve_document(self, request_id: str, doc_type: DocType, actor: Actor) -> Request:
        return await self.execute(ApproveDocument(request_id, doc_type, actor))

    async def update_document(self, request_id: str, doc_type: DocType, content: str) -> Request:
        return await self.execute(UpdateDocument(request_id, doc_type, content))
