"""
Requirement document generation.

Generates the BRD, FSD and technical specification for a request in that
order, one streamed generation call each. The next call starts only after
the previous one has finished. The finished set is attached to the request
with every approval cleared; approving all three is what unlocks
Scoping -> Ready for Dev.
"""

import logging
from typing import Callable, Optional

from reqflow.agents.generation import GenerationClient
from reqflow.agents.stream import ParseError, ProgressCallback
from reqflow.lib.models import (
    Actor,
    DocType,
    DocumentApproval,
    GeneratedDocs,
    Request,
    UserMode,
)
from reqflow.lib.prompts import render_prompt
from reqflow.workflow.mutations import DOC_NAMES
from reqflow.workflow.permissions import PermissionDenied, can_generate_documents
from reqflow.workflow.store import RequestStore

logger = logging.getLogger(__name__)

MODE_INSTRUCTIONS: dict[UserMode, str] = {
    UserMode.GUIDED: "You are a patient teacher helping a junior Product Owner. Keep explanations clear and concise.",
    UserMode.COLLABORATIVE: "You are helping an experienced Product Owner. Be professional and thorough.",
    UserMode.EXPERT: "You are helping a senior Product Owner. Be detailed and technical.",
}

DOC_SECTIONS: dict[DocType, list[str]] = {
    DocType.BRD: [
        "Executive Summary",
        "Business Objectives",
        "Current State & Pain Points",
        "Desired Future State",
        "Stakeholders",
        "Scope",
        "Success Criteria",
    ],
    DocType.FSD: [
        "Overview",
        "User Stories (2-3 stories)",
        "Functional Requirements",
        "Data Requirements",
        "Business Rules",
    ],
    DocType.TECH_SPEC: [
        "Technical Overview",
        "Implementation Approach",
        "Technical Requirements",
        "Configuration Changes",
        "Effort Estimate",
    ],
}

REFINE_MAX_TOKENS = 3000

StepCallback = Callable[[int, DocType], None]


def document_prompt(request: Request, doc_type: DocType, mode: UserMode) -> str:
    return render_prompt(
        "document",
        mode_instructions=MODE_INSTRUCTIONS[mode],
        doc_name=DOC_NAMES[doc_type],
        sections="\n".join(f"- {section}" for section in DOC_SECTIONS[doc_type]),
        title=request.title,
        priority=request.priority.value,
        owner=request.owner,
    )


class DocumentGenerator:
    """Generates and refines requirement documents for requests in Scoping."""

    def __init__(self, store: RequestStore, generation: GenerationClient):
        self.store = store
        self.generation = generation

    def _check_gate(self, request: Request, actor: Actor) -> None:
        if not can_generate_documents(actor.role, request.stage):
            raise PermissionDenied(actor.role, f"generate documents in {request.stage.value}", request.id)

    async def generate(
        self,
        request_id: str,
        actor: Actor,
        mode: UserMode = UserMode.COLLABORATIVE,
        on_step: Optional[StepCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Request:
        """Generate all three documents and attach them to the request.

        on_step(index, doc_type) is called before each call, index 1..3.

        Raises:
            PermissionDenied: Actor may not generate documents at this stage
            GenerationError / ParseError: A generation call failed; nothing is attached
            NetworkError: Attaching failed (rolled back by the store)
        """
        request = self.store.get(request_id)
        self._check_gate(request, actor)

        contents: dict[DocType, str] = {}
        for index, doc_type in enumerate(DocType, start=1):
            if on_step:
                on_step(index, doc_type)
            logger.info(f"[DOCS] {request.id}: generating {doc_type.value} ({index}/{len(DocType)})")
            data = await self.generation.stream_json(
                document_prompt(request, doc_type, mode),
                schema_name="document",
                on_progress=on_progress,
            )
            contents[doc_type] = data["content"]

        documents = GeneratedDocs(
            contents=contents,
            approvals={doc_type: DocumentApproval() for doc_type in DocType},
        )
        return await self.store.attach_documents(request.id, documents, actor)

    async def refine(self, request_id: str, doc_type: DocType, feedback: str, actor: Actor) -> Request:
        """Rewrite one document according to feedback and store the new version.

        Raises:
            PermissionDenied: Actor may not edit documents at this stage
            ValueError: No documents have been generated, or feedback is blank
            GenerationError / ParseError: The generation call failed or returned nothing
        """
        request = self.store.get(request_id)
        self._check_gate(request, actor)
        if request.documents is None:
            raise ValueError(f"No documents generated for {request.id}")
        if not feedback.strip():
            raise ValueError("Refinement feedback is required")

        prompt = render_prompt(
            "refine_document",
            doc_name=DOC_NAMES[doc_type],
            current_doc=request.documents.contents.get(doc_type, ""),
            feedback=feedback.strip(),
        )
        content = (await self.generation.complete(prompt, max_tokens=REFINE_MAX_TOKENS)).strip()
        if not content:
            raise ParseError(f"Refinement of {doc_type.value} returned no content")

        logger.info(f"[DOCS] {request.id}: refined {doc_type.value}")
        return await self.store.update_document(request.id, doc_type, content)
