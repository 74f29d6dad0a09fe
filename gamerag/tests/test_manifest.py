"""Test suite for the ingestion manifest."""

import pytest

from ..rag.manifest import ManifestStore, compute_hash


def test_compute_hash_is_stable_sha256():
    assert compute_hash("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert compute_hash("abc") != compute_hash("abd")


@pytest.mark.asyncio
async def test_missing_manifest_is_empty(tmp_path):
    assert await ManifestStore(tmp_path).load("smith") == {}


@pytest.mark.asyncio
async def test_save_and_load(tmp_path):
    store = ManifestStore(tmp_path / "manifests")
    await store.save("smith", {"/lore/a.txt": "h1", "/lore/b.txt": "h2"})

    assert await store.load("smith") == {"/lore/a.txt": "h1", "/lore/b.txt": "h2"}
    assert await store.load("guard") == {}
    assert not list((tmp_path / "manifests").glob("*.tmp"))


@pytest.mark.asyncio
async def test_corrupt_manifest_is_ignored(tmp_path):
    (tmp_path / "smith.json").write_text("{not json", encoding="utf-8")
    assert await ManifestStore(tmp_path).load("smith") == {}


@pytest.mark.asyncio
async def test_clear(tmp_path):
    store = ManifestStore(tmp_path)
    await store.save("smith", {"a": "b"})
    await store.clear("smith")
    await store.clear("smith")

    assert await store.load("smith") == {}
