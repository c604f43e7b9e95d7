"""Tests for reqflow.workflow.documents module."""

import asyncio

import pytest

from reqflow.agents.stream import ParseError
from reqflow.lib.models import DocType, Stage, UserMode
from reqflow.workflow.documents import DocumentGenerator, document_prompt
from reqflow.workflow.permissions import PermissionDenied


class FakeGeneration:
    """Records calls; stream_json yields to the loop mid-call to expose overlap."""

    def __init__(self, fail_on=None):
        self.events = []
        self.prompts = []
        self.fail_on = fail_on

    async def stream_json(self, prompt, schema_name=None, on_progress=None, max_tokens=None):
        index = len(self.prompts)
        self.prompts.append(prompt)
        self.events.append(("start", index))
        await asyncio.sleep(0)
        if self.fail_on == index:
            raise ParseError("Generated output is not valid JSON")
        self.events.append(("end", index))
        return {"content": f"## Document {index + 1}"}

    async def complete(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        return "## Revised document\n"


class TestDocumentPrompt:

    def test_includes_request_and_sections(self, make_request):
        prompt = document_prompt(make_request(), DocType.FSD, UserMode.EXPERT)
        assert "senior Product Owner" in prompt
        assert "Functional Specification Document" in prompt
        assert "- User Stories (2-3 stories)" in prompt
        assert '"Pipeline dashboard"' in prompt
        assert '"content": "markdown content"' in prompt


class TestGenerate:
    """Tests for DocumentGenerator.generate()."""

    def test_generates_three_documents_in_order(self, make_store, make_request, product_owner, run):
        store, _ = make_store(make_request())
        generation = FakeGeneration()
        steps = []

        updated = run(DocumentGenerator(store, generation).generate(
            "REQ-001", product_owner, on_step=lambda index, doc_type: steps.append((index, doc_type)),
        ))

        assert steps == [(1, DocType.BRD), (2, DocType.FSD), (3, DocType.TECH_SPEC)]
        assert generation.events == [("start", 0), ("end", 0), ("start", 1), ("end", 1), ("start", 2), ("end", 2)]
        assert updated.documents.contents[DocType.BRD] == "## Document 1"
        assert updated.documents.contents[DocType.TECH_SPEC] == "## Document 3"
        assert not any(updated.documents.approval(d).approved for d in DocType)
        assert store.get("REQ-001").documents == updated.documents

    def test_only_product_owner(self, make_store, make_request, dev, run):
        store, _ = make_store(make_request())
        generation = FakeGeneration()
        with pytest.raises(PermissionDenied):
            run(DocumentGenerator(store, generation).generate("REQ-001", dev))
        assert generation.prompts == []

    def test_only_in_scoping(self, make_store, make_request, product_owner, run):
        store, _ = make_store(make_request(stage=Stage.IN_PROGRESS))
        with pytest.raises(PermissionDenied):
            run(DocumentGenerator(store, FakeGeneration()).generate("REQ-001", product_owner))

    def test_failure_attaches_nothing(self, make_store, make_request, product_owner, run):
        store, persistence = make_store(make_request())
        generation = FakeGeneration(fail_on=1)
        with pytest.raises(ParseError):
            run(DocumentGenerator(store, generation).generate("REQ-001", product_owner))
        assert store.get("REQ-001").documents is None
        assert persistence.patches == []
        assert len(generation.prompts) == 2


class TestRefine:

    def test_refines_one_document(self, make_store, make_request, make_documents, product_owner, run):
        store, _ = make_store(make_request(documents=make_documents()))
        generation = FakeGeneration()
        updated = run(DocumentGenerator(store, generation).refine("REQ-001", DocType.BRD, "Add a rollout plan", product_owner))

        assert updated.documents.contents[DocType.BRD] == "## Revised document"
        assert updated.documents.contents[DocType.FSD] == "## fsd"
        assert "Add a rollout plan" in generation.prompts[0]
        assert "## brd" in generation.prompts[0]

    def test_requires_documents(self, make_store, make_request, product_owner, run):
        store, _ = make_store(make_request())
        with pytest.raises(ValueError):
            run(DocumentGenerator(store, FakeGeneration()).refine("REQ-001", DocType.BRD, "More detail", product_owner))

    def test_requires_feedback(self, make_store, make_request, make_documents, product_owner, run):
        store, _ = make_store(make_request(documents=make_documents()))
        with pytest.raises(ValueError):
            run(DocumentGenerator(store, FakeGeneration()).refine("REQ-001", DocType.BRD, "  ", product_owner))
