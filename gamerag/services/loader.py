"""Build an NpcAgent from a YAML config file."""
import logging
from pathlib import Path
from typing import Optional

from ..domain.exceptions import ConfigurationError
from ..domain.interfaces import IVectorStore
from ..domain.models import NpcConfig
from ..infrastructure.vector_stores import create_vector_store
from ..rag.config import ProviderRuntimeOptions, RetrievalConfig, StorageConfig
from ..rag.manifest import ManifestStore
from .agent import NpcAgent

logger = logging.getLogger(__name__)

STORAGE_DIRNAME = ".gamerag"


def read_config(config_path: Path) -> NpcConfig:
    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError(f"NPC config not found: {path}")
    return NpcConfig.from_yaml(path.read_text(encoding="utf-8"))


def load_agent(
    config_path: Path,
    storage_config: Optional[StorageConfig] = None,
    runtime: Optional[ProviderRuntimeOptions] = None,
    vector_store: Optional[IVectorStore] = None,
    retrieval_config: Optional[RetrievalConfig] = None
) -> NpcAgent:
    """
    Load an NPC config and wire its agent.

    Source paths resolve relative to the config file's directory; indexes and
    manifests live under <config dir>/.gamerag unless storage_config sets a root.
    A vector_store passed in is shared and not closed by the agent.
    """
    config_path = Path(config_path).resolve()
    config = read_config(config_path)
    config_dir = config_path.parent

    storage = storage_config or StorageConfig.from_env()
    if storage.root is None:
        storage.root = config_dir / STORAGE_DIRNAME

    owns_store = vector_store is None
    store = vector_store or create_vector_store(storage)

    logger.info(f"Loaded NPC {config.persona.id} from {config_path.name}")
    return NpcAgent(
        config,
        config_dir,
        store,
        ManifestStore(storage.manifests_dir),
        runtime=runtime or ProviderRuntimeOptions.from_env(config),
        retrieval_config=retrieval_config or RetrievalConfig.from_env(),
        owns_store=owns_store,
    )
