"""
Per-persona ingestion manifest.

Maps absolute source path -> SHA-256 of the file text. A matching hash means
the file's chunks are already in the index and re-embedding is skipped.
Losing the manifest only forces a full re-embed.
"""

import asyncio
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Dict

from .scopes import sanitize_scope

logger = logging.getLogger(__name__)


def compute_hash(text: str) -> str:
    """Hex SHA-256 of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ManifestStore:
    """
    JSON manifest files, one per persona.

    Directory structure:
    <root>/manifests/{persona_id}.json
    """

    def __init__(self, manifests_dir: Path):
        self.manifests_dir = Path(manifests_dir)

    def _get_manifest_path(self, persona_id: str) -> Path:
        return self.manifests_dir / f"{sanitize_scope(persona_id)}.json"

    async def load(self, persona_id: str) -> Dict[str, str]:
        """Load the manifest; missing or unreadable files yield an empty one."""
        path = self._get_manifest_path(persona_id)
        if not path.exists():
            return {}

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            data = json.loads(text) if text.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable manifest {path}: {e}")
            return {}

        return {str(k): str(v) for k, v in data.items()}

    async def save(self, persona_id: str, manifest: Dict[str, str]) -> None:
        """Write the manifest atomically (temp file + rename)."""
        path = self._get_manifest_path(persona_id)
        payload = json.dumps(manifest, indent=2, sort_keys=True)
        await asyncio.to_thread(write_text_atomic, path, payload)
        logger.debug(f"Saved manifest for {persona_id}: {len(manifest)} sources")

    async def clear(self, persona_id: str) -> None:
        path = self._get_manifest_path(persona_id)
        if path.exists():
            await asyncio.to_thread(path.unlink)


def write_text_atomic(path: Path, payload: str) -> None:
    """Write via a temp file and rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    os.replace(tmp_path, path)
