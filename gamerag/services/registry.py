"""
Agent registry - every NPC config in a directory, addressable by persona id
or file stem (case-insensitive).
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..domain.interfaces import IVectorStore
from ..infrastructure.vector_stores import create_vector_store
from ..rag.config import RetrievalConfig, StorageConfig
from .agent import NpcAgent
from .loader import STORAGE_DIRNAME, load_agent

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Holds loaded agents that share one vector store."""

    def __init__(self, vector_store: Optional[IVectorStore] = None):
        self.vector_store = vector_store
        self._agents: Dict[str, NpcAgent] = {}

    def register(self, agent: NpcAgent, *aliases: str) -> None:
        for name in (agent.persona_id, *aliases):
            self._agents[name.lower()] = agent

    def get(self, name: str) -> Optional[NpcAgent]:
        return self._agents.get((name or "").lower())

    @property
    def agents(self) -> List[NpcAgent]:
        unique: Dict[int, NpcAgent] = {}
        for agent in self._agents.values():
            unique.setdefault(id(agent), agent)
        return list(unique.values())

    def __len__(self) -> int:
        return len(self.agents)

    @classmethod
    def load_directory(
        cls,
        config_dir: Path,
        storage_config: Optional[StorageConfig] = None,
        retrieval_config: Optional[RetrievalConfig] = None
    ) -> "AgentRegistry":
        """Load every *.yaml / *.yml file under config_dir, subdirectories included."""
        config_dir = Path(config_dir).resolve()
        storage = storage_config or StorageConfig.from_env()
        if storage.root is None:
            storage.root = config_dir / STORAGE_DIRNAME

        registry = cls(create_vector_store(storage))
        paths = sorted(
            path for pattern in ("*.yaml", "*.yml") for path in config_dir.rglob(pattern)
            if STORAGE_DIRNAME not in path.relative_to(config_dir).parts
        )
        for path in paths:
            agent = load_agent(
                path,
                storage_config=storage,
                vector_store=registry.vector_store,
                retrieval_config=retrieval_config,
            )
            registry.register(agent, path.stem)

        logger.info(f"Loaded {len(registry)} NPCs from {config_dir}")
        return registry

    async def ensure_all(self, clean: bool = False) -> int:
        total = 0
        for agent in self.agents:
            total += await agent.ensure_index(clean=clean)
        return total

    async def aclose(self) -> None:
        for agent in self.agents:
            await agent.aclose()
        if self.vector_store is not None:
            await self.vector_store.close()
        self._agents.clear()
