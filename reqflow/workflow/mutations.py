"""Optimistic mutations as commands.

Each mutation knows how to build the next version of one request from the
current one, and what partial to send to persistence. build() is where
permission and validation failures surface - before the store has applied
anything. Returning None from build() means "nothing to do".

The store supplies the compensation (snapshot restore), so a new mutation
type only needs build() and payload().
"""

from datetime import datetime
from typing import Optional

from reqflow.lib.impact import validate_assessment
from reqflow.lib.models import (
    Actor,
    ActivityItem,
    DocType,
    DocumentApproval,
    GeneratedDocs,
    ImpactAssessment,
    Request,
    Stage,
    format_timestamp,
)
from reqflow.workflow.fsm import RequestLifecycle
from reqflow.workflow.permissions import PermissionDenied, can_approve_documents, can_transition

DOC_NAMES: dict[DocType, str] = {
    DocType.BRD: "Business Requirements Document",
    DocType.FSD: "Functional Specification Document",
    DocType.TECH_SPEC: "Technical Specification",
}

# Entering this edge hands the request to whoever starts the work.
OWNER_HANDOFF = (Stage.READY_FOR_DEV, Stage.IN_PROGRESS)


class Mutation:
    """Base class for a single-request optimistic change."""

    label = "update"

    def __init__(self, request_id: str):
        self.request_id = request_id

    def build(self, current: Request, now: datetime) -> Optional[Request]:
        raise NotImplementedError

    def payload(self, updated: Request) -> dict:
        raise NotImplementedError


def _log_entry(current: Request, now: datetime, action: str, user: str) -> dict:
    """Fields every logged mutation changes: one new activity item plus lastUpdate."""
    stamp = format_timestamp(now)
    return {
        "activity": [*current.activity, ActivityItem(timestamp=stamp, action=action, user=user)],
        "last_update": stamp,
    }


def _activity_payload(updated: Request) -> dict:
    return {
        "activity": [item.to_dict() for item in updated.activity],
        "lastUpdate": updated.last_update,
    }


class StageChange(Mutation):
    """Move a request to another stage through the lifecycle machine."""

    label = "update_stage"

    def __init__(self, request_id: str, new_stage: Stage, note: str, actor: Actor):
        super().__init__(request_id)
        self.new_stage = new_stage
        self.note = note or ""
        self.actor = actor

    def build(self, current: Request, now: datetime) -> Request:
        if not can_transition(self.actor.role, current.stage, self.new_stage):
            raise PermissionDenied(
                self.actor.role,
                f"move {current.stage.value} -> {self.new_stage.value}",
                current.id,
            )

        lifecycle = RequestLifecycle(current.id, current.stage)
        documents_approved = current.documents is not None and current.documents.all_approved()
        lifecycle.move_to(self.new_stage, note=self.note, documents_approved=documents_approved)

        owner = current.owner
        if (current.stage, self.new_stage) == OWNER_HANDOFF:
            owner = self.actor.name

        action = self.note.strip() or f"Moved to {self.new_stage.value}"
        return current.evolve(
            stage=lifecycle.stage,
            owner=owner,
            ai_alert=None,
            **_log_entry(current, now, action, self.actor.name),
        )

    def payload(self, updated: Request) -> dict:
        return {
            "stage": updated.stage.value,
            "owner": updated.owner,
            "aiAlert": None,
            **_activity_payload(updated),
        }


class DismissAlert(Mutation):
    """Clear the AI alert. A request with no alert is left untouched."""

    label = "dismiss_alert"

    def build(self, current: Request, now: datetime) -> Optional[Request]:
        if current.ai_alert is None:
            return None
        return current.evolve(ai_alert=None)

    def payload(self, updated: Request) -> dict:
        return {"aiAlert": None}


class AdjustImpact(Mutation):
    """Replace the impact assessment wholesale (no merge with the old one)."""

    label = "adjust_impact_score"

    def __init__(self, request_id: str, assessment: ImpactAssessment, actor: Actor, strict_sum: bool = False):
        super().__init__(request_id)
        self.assessment = assessment
        self.actor = actor
        self.strict_sum = strict_sum

    def build(self, current: Request, now: datetime) -> Request:
        validate_assessment(self.assessment.to_dict(), strict_sum=self.strict_sum)
        action = (
            f"Impact score adjusted to {self.assessment.total_score:g} "
            f"(Tier {self.assessment.tier})"
        )
        return current.evolve(
            impact_assessment=self.assessment,
            **_log_entry(current, now, action, self.actor.name),
        )

    def payload(self, updated: Request) -> dict:
        return {
            "impactAssessment": updated.impact_assessment.to_dict(),
            **_activity_payload(updated),
        }


class AttachDocuments(Mutation):
    """Store freshly generated documents (all unapproved)."""

    label = "attach_documents"

    def __init__(self, request_id: str, documents: GeneratedDocs, actor: Actor):
        super().__init__(request_id)
        self.documents = documents
        self.actor = actor

    def build(self, current: Request, now: datetime) -> Request:
        return current.evolve(
            documents=self.documents,
            **_log_entry(current, now, "Requirements generated", self.actor.name),
        )

    def payload(self, updated: Request) -> dict:
        return {"documents": updated.documents.to_dict(), **_activity_payload(updated)}


class ApproveDocument(Mutation):
    """Sign off one generated document. Approving twice is a no-op."""

    label = "approve_document"

    def __init__(self, request_id: str, doc_type: DocType, actor: Actor):
        super().__init__(request_id)
        self.doc_type = doc_type
        self.actor = actor

    def build(self, current: Request, now: datetime) -> Optional[Request]:
        if not can_approve_documents(self.actor.role, current.stage):
            raise PermissionDenied(self.actor.role, f"approve documents in {current.stage.value}", current.id)
        if current.documents is None:
            raise ValueError(f"No documents generated for {current.id}")
        if current.documents.approval(self.doc_type).approved:
            return None

        approval = DocumentApproval(
            approved=True,
            approver=self.actor.name,
            approver_role=self.actor.role,
            date=format_timestamp(now),
        )
        return current.evolve(
            documents=current.documents.with_approval(self.doc_type, approval),
            **_log_entry(current, now, f"Approved {DOC_NAMES[self.doc_type]}", self.actor.name),
        )

    def payload(self, updated: Request) -> dict:
        return {"documents": updated.documents.to_dict(), **_activity_payload(updated)}


class UpdateDocument(Mutation):
    """Replace the markdown of one document (manual edit or refinement)."""

    label = "update_document"

    def __init__(self, request_id: str, doc_type: DocType, content: str):
        super().__init__(request_id)
        self.doc_type = doc_type
        self.content = content

    def build(self, current: Request, now: datetime) -> Optional[Request]:
        if current.documents is None:
            raise ValueError(f"No documents generated for {current.id}")
        if current.documents.contents.get(self.doc_type) == self.content:
            return None
        return current.evolve(
            documents=current.documents.with_content(self.doc_type, self.content),
            last_update=format_timestamp(now),
        )

    def payload(self, updated: Request) -> dict:
        return {"documents": updated.documents.to_dict(), "lastUpdate": updated.last_update}
