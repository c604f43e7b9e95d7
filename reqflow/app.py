"""
Composition root.

AppState wires configuration, the two HTTP collaborators, the store and
the document generator together. Everything that needs one of them is
handed the AppState (or the piece it needs) explicitly.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from reqflow.agents.generation import GenerationClient
from reqflow.agents.persistence import PersistenceClient
from reqflow.lib.config import EngineConfig
from reqflow.lib.models import Request
from reqflow.workflow.documents import DocumentGenerator
from reqflow.workflow.store import RequestStore
from reqflow.workflow.submission import submit_request


@dataclass
class AppState:
    config: EngineConfig
    persistence: PersistenceClient
    generation: GenerationClient
    store: RequestStore
    documents: DocumentGenerator

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        persistence: Optional[PersistenceClient] = None,
        generation: Optional[GenerationClient] = None,
    ) -> "AppState":
        persistence = persistence or PersistenceClient(config.persistence)
        generation = generation or GenerationClient(config.generation)
        store = RequestStore(persistence, strict_sum=config.impact.strict_sum)
        return cls(
            config=config,
            persistence=persistence,
            generation=generation,
            store=store,
            documents=DocumentGenerator(store, generation),
        )

    async def submit(self, data: dict, submitted_by: str, now: Optional[datetime] = None) -> Request:
        return await submit_request(
            self.store,
            self.generation,
            data,
            submitted_by,
            now=now,
            routing_defaults=self.config.routing,
        )

    async def aclose(self) -> None:
        await self.persistence.aclose()
        await self.generation.aclose()
