"""
Shared data types for reqflow.

Dataclasses for the request entity and everything hanging off it. The
persistence collaborator stores camelCase JSON; from_dict/to_dict convert
at that boundary so the rest of the code only sees typed values.

Request instances are treated as immutable: mutations build a new instance
with dataclasses.replace() and fresh lists, never edit one in place.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from reqflow.lib.validate import ValidationError, validate

logger = logging.getLogger(__name__)


class Stage(Enum):
    """Workflow stages, in pipeline order."""

    INTAKE = "Intake"
    SCOPING = "Scoping"
    READY_FOR_DEV = "Ready for Dev"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    COMPLETED = "Completed"  # terminal


class Role(Enum):
    REQUESTER = "requester"
    DEV = "dev"
    MANAGEMENT = "management"
    PRODUCT_OWNER = "product-owner"


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Complexity(Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class SLAStatus(Enum):
    ON_TIME = "on-time"
    AT_RISK = "at-risk"
    OVERDUE = "overdue"


class DocType(Enum):
    """Generated requirement documents, in generation order."""

    BRD = "brd"
    FSD = "fsd"
    TECH_SPEC = "techSpec"


class UserMode(Enum):
    GUIDED = "guided"
    COLLABORATIVE = "collaborative"
    EXPERT = "expert"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp. Naive values are taken as UTC.

    Returns None for empty input or unparseable text (logged).
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Actor:
    """Who performs a mutation: a display name plus the role acted under."""
    name: str
    role: Role


@dataclass
class ActivityItem:
    timestamp: str
    action: str
    user: str

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "action": self.action, "user": self.user}

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityItem":
        return cls(
            timestamp=str(data.get("timestamp", "")),
            action=str(data.get("action", "")),
            user=str(data.get("user", "")),
        )


# wire name -> (attribute name, max points)
BREAKDOWN_DIMENSIONS: dict[str, tuple[str, int]] = {
    "revenueImpact": ("revenue_impact", 30),
    "userReach": ("user_reach", 25),
    "strategicAlignment": ("strategic_alignment", 20),
    "urgency": ("urgency", 15),
    "quickWinBonus": ("quick_win_bonus", 10),
}


@dataclass
class ImpactBreakdown:
    revenue_impact: float = 0
    user_reach: float = 0
    strategic_alignment: float = 0
    urgency: float = 0
    quick_win_bonus: float = 0

    def total(self) -> float:
        return sum(getattr(self, attr) for attr, _ in BREAKDOWN_DIMENSIONS.values())

    def to_dict(self) -> dict:
        return {wire: getattr(self, attr) for wire, (attr, _) in BREAKDOWN_DIMENSIONS.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "ImpactBreakdown":
        return cls(**{attr: data.get(wire, 0) for wire, (attr, _) in BREAKDOWN_DIMENSIONS.items()})


@dataclass
class ImpactAssessment:
    """Scored impact of a request.

    Tier records provenance: 1 = AI generated, 2 = human override,
    3 = validated business case. An override replaces the whole assessment.
    """
    total_score: float
    breakdown: ImpactBreakdown
    tier: int
    assessed_at: str
    assessed_by: str
    justification: str
    dependencies: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    customer_commitment: Optional[bool] = None
    competitive_intel: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "totalScore": self.total_score,
            "breakdown": self.breakdown.to_dict(),
            "tier": self.tier,
            "assessedAt": self.assessed_at,
            "assessedBy": self.assessed_by,
            "justification": self.justification,
        }
        if self.dependencies:
            data["dependencies"] = list(self.dependencies)
        if self.risks:
            data["risks"] = list(self.risks)
        if self.customer_commitment is not None:
            data["customerCommitment"] = self.customer_commitment
        if self.competitive_intel:
            data["competitiveIntel"] = self.competitive_intel
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ImpactAssessment":
        """Build from a wire dict. Callers validate first (see lib.impact)."""
        return cls(
            total_score=data["totalScore"],
            breakdown=ImpactBreakdown.from_dict(data["breakdown"]),
            tier=data["tier"],
            assessed_at=data.get("assessedAt", ""),
            assessed_by=data.get("assessedBy", ""),
            justification=data.get("justification", ""),
            dependencies=list(data.get("dependencies") or []),
            risks=list(data.get("risks") or []),
            customer_commitment=data.get("customerCommitment"),
            competitive_intel=data.get("competitiveIntel"),
        )


@dataclass
class SLAData:
    target_completion_date: str  # ISO date, e.g. "2026-03-14"
    days_remaining: int
    status: SLAStatus
    days_overdue: Optional[int] = None  # only set when overdue

    def to_dict(self) -> dict:
        data = {
            "targetCompletionDate": self.target_completion_date,
            "daysRemaining": self.days_remaining,
            "status": self.status.value,
        }
        if self.days_overdue is not None:
            data["daysOverdue"] = self.days_overdue
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SLAData":
        return cls(
            target_completion_date=data["targetCompletionDate"],
            days_remaining=int(data["daysRemaining"]),
            status=SLAStatus(data["status"]),
            days_overdue=data.get("daysOverdue"),
        )


@dataclass
class DocumentApproval:
    approved: bool = False
    approver: Optional[str] = None
    approver_role: Optional[Role] = None  # audit trail: which role signed off
    date: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {"approved": self.approved}
        if self.approver:
            data["approver"] = self.approver
        if self.approver_role:
            data["approverRole"] = self.approver_role.value
        if self.date:
            data["date"] = self.date
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentApproval":
        role = data.get("approverRole")
        return cls(
            approved=bool(data.get("approved", False)),
            approver=data.get("approver"),
            approver_role=Role(role) if role else None,
            date=data.get("date"),
        )


@dataclass
class GeneratedDocs:
    """BRD, FSD and tech spec markdown plus per-document approval state."""
    contents: dict[DocType, str]
    approvals: dict[DocType, DocumentApproval] = field(default_factory=dict)

    def approval(self, doc_type: DocType) -> DocumentApproval:
        return self.approvals.get(doc_type) or DocumentApproval()

    def all_approved(self) -> bool:
        return all(self.approval(doc_type).approved for doc_type in DocType)

    def with_content(self, doc_type: DocType, content: str) -> "GeneratedDocs":
        contents = dict(self.contents)
        contents[doc_type] = content
        return GeneratedDocs(contents=contents, approvals=dict(self.approvals))

    def with_approval(self, doc_type: DocType, approval: DocumentApproval) -> "GeneratedDocs":
        approvals = dict(self.approvals)
        approvals[doc_type] = approval
        return GeneratedDocs(contents=dict(self.contents), approvals=approvals)

    def to_dict(self) -> dict:
        data: dict = {doc_type.value: self.contents.get(doc_type, "") for doc_type in DocType}
        data["approvals"] = {doc_type.value: self.approval(doc_type).to_dict() for doc_type in DocType}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "GeneratedDocs":
        approvals_data = data.get("approvals") or {}
        return cls(
            contents={doc_type: str(data.get(doc_type.value, "")) for doc_type in DocType},
            approvals={
                doc_type: DocumentApproval.from_dict(approvals_data[doc_type.value])
                for doc_type in DocType
                if doc_type.value in approvals_data
            },
        )


@dataclass
class RoutingInfo:
    """Who should own a new request, and how big it looks."""
    owner: str
    type: str
    complexity: Complexity
    timeline: str
    priority: Priority

    @classmethod
    def from_dict(cls, data: dict) -> "RoutingInfo":
        return cls(
            owner=data["owner"],
            type=data.get("type", ""),
            complexity=Complexity(data["complexity"]),
            timeline=data.get("timeline", ""),
            priority=Priority(data["priority"]),
        )


@dataclass
class Request:
    """A business-change request moving through the workflow."""
    id: str
    title: str
    stage: Stage
    owner: str
    priority: Priority
    submitted_by: Optional[str] = None
    complexity: Optional[Complexity] = None  # None is treated as medium
    created_at: Optional[datetime] = None
    days_open: int = 0  # fallback for created_at on legacy records
    clarity_score: Optional[int] = None
    timeline: Optional[str] = None
    last_update: Optional[str] = None
    activity: list[ActivityItem] = field(default_factory=list)
    ai_alert: Optional[str] = None
    impact_assessment: Optional[ImpactAssessment] = None
    sla: Optional[SLAData] = None  # cached; recomputed when absent
    documents: Optional[GeneratedDocs] = None

    def evolve(self, **changes) -> "Request":
        """Return a copy with changes applied. Activity is always a new list."""
        changes.setdefault("activity", list(self.activity))
        return replace(self, **changes)

    def to_dict(self) -> dict:
        data: dict = {
            "id": self.id,
            "title": self.title,
            "stage": self.stage.value,
            "owner": self.owner,
            "priority": self.priority.value,
            "daysOpen": self.days_open,
            "activity": [item.to_dict() for item in self.activity],
            "aiAlert": self.ai_alert,
        }
        if self.submitted_by is not None:
            data["submittedBy"] = self.submitted_by
        if self.complexity is not None:
            data["complexity"] = self.complexity.value
        if self.created_at is not None:
            data["createdAt"] = format_timestamp(self.created_at)
        if self.clarity_score is not None:
            data["clarityScore"] = self.clarity_score
        if self.timeline is not None:
            data["timeline"] = self.timeline
        if self.last_update is not None:
            data["lastUpdate"] = self.last_update
        if self.impact_assessment is not None:
            data["impactAssessment"] = self.impact_assessment.to_dict()
        if self.sla is not None:
            data["sla"] = self.sla.to_dict()
        if self.documents is not None:
            data["documents"] = self.documents.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Request":
        """Build a Request from untrusted wire data.

        Raises:
            ValidationError: if the request itself doesn't match its schema.

        An invalid nested impact assessment is dropped (logged) rather than
        failing the whole request; the request is then treated as unassessed.
        """
        validate(data, "request")

        assessment = None
        if data.get("impactAssessment") is not None:
            try:
                validate(data["impactAssessment"], "impact_assessment")
                assessment = ImpactAssessment.from_dict(data["impactAssessment"])
            except ValidationError as e:
                logger.warning(f"Dropping invalid impact assessment on {data['id']}: {e}")

        sla = None
        if data.get("sla"):
            try:
                sla = SLAData.from_dict(data["sla"])
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Ignoring malformed cached SLA on {data['id']}: {e}")

        complexity = data.get("complexity")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            stage=Stage(data["stage"]),
            owner=data.get("owner", ""),
            priority=Priority(data["priority"]),
            submitted_by=data.get("submittedBy"),
            complexity=Complexity(complexity) if complexity else None,
            created_at=parse_timestamp(data.get("createdAt")),
            days_open=int(data.get("daysOpen") or 0),
            clarity_score=data.get("clarityScore"),
            timeline=data.get("timeline"),
            last_update=data.get("lastUpdate"),
            activity=[ActivityItem.from_dict(item) for item in data.get("activity") or []],
            ai_alert=data.get("aiAlert"),
            impact_assessment=assessment,
            sla=sla,
            documents=GeneratedDocs.from_dict(data["documents"]) if data.get("documents") else None,
        )
