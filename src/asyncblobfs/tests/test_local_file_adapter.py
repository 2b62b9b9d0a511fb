import asyncio
import os
import sys

import pytest

from asyncblobfs import (
    ErrorKind,
    LocalFileAdapter,
    PathTraversalDetected,
    UnableToReadFile,
    UnsupportedCapability,
)
from asyncblobfs.local_file_adapter import _ensure_within


@pytest.fixture
def adapter(tmp_path):
    return LocalFileAdapter(str(tmp_path / "root"))


def test_ensure_within(tmp_path):
    assert _ensure_within(tmp_path, tmp_path / "a" / "b.txt") == (tmp_path / "a" / "b.txt").resolve()
    with pytest.raises(ValueError) as excinfo:
        _ensure_within(tmp_path, tmp_path / ".." / "outside.txt")
    assert "escapes base directory" in str(excinfo.value)


@pytest.mark.asyncio
async def test_local_path_traversal_protection(adapter):
    with pytest.raises(PathTraversalDetected):
        await adapter.read("../../etc/passwd")
    with pytest.raises(PathTraversalDetected):
        await adapter.write("../outside.txt", b"x")


@pytest.mark.asyncio
async def test_local_delete_outside_protection(adapter, tmp_path):
    outside_file = tmp_path / "outside.txt"
    outside_file.write_text("secret")

    with pytest.raises(PathTraversalDetected):
        await adapter.delete("../outside.txt")

    assert outside_file.exists(), "Outside file should not be deleted"


@pytest.mark.asyncio
async def test_symlink_outside_protection(adapter, tmp_path):
    if not hasattr(os, "symlink"):
        pytest.skip("Symlinks not supported on this platform")
    if sys.platform == "win32":
        # Windows requires admin or Developer Mode for symlinks
        try:
            test_link = tmp_path / "test_link"
            test_target = tmp_path / "test_target"
            test_target.write_text("x")
            test_link.symlink_to(test_target)
        except OSError:
            pytest.skip("Symlink creation not permitted on this Windows system")

    outside_file = tmp_path / "outside.txt"
    outside_file.write_text("secret")
    (tmp_path / "root" / "link.txt").symlink_to(outside_file)

    # Reading should fail due to symlink escape
    with pytest.raises(PathTraversalDetected):
        await adapter.read("link.txt")

    # Delete should also fail
    with pytest.raises(PathTraversalDetected):
        await adapter.delete("link.txt")

    # Listing should not expose it either
    with pytest.raises(PathTraversalDetected):
        [entry async for entry in adapter.list_contents("")]

    assert outside_file.read_text() == "secret"


@pytest.mark.asyncio
async def test_global_concurrency_lock(adapter):
    async def writer(data):
        await adapter.write("shared.txt", data.encode())

    # Run two writes concurrently
    await asyncio.gather(writer("first"), writer("second"))

    # Only one of the writes should be present (last one wins, but no corruption)
    content = (await adapter.read("shared.txt")).decode()
    assert content in ("first", "second")


@pytest.mark.asyncio
async def test_read_missing_file(adapter):
    with pytest.raises(UnableToReadFile) as excinfo:
        await adapter.read("missing.txt")
    assert excinfo.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_urls(adapter, tmp_path):
    assert adapter.get_url("a.txt") == (tmp_path / "root" / "a.txt").resolve().as_uri()
    with pytest.raises(UnsupportedCapability):
        adapter.get_temporary_url("a.txt", None)


@pytest.mark.asyncio
async def test_visibility_is_unsupported(adapter):
    with pytest.raises(UnsupportedCapability):
        await adapter.visibility("a.txt")
    with pytest.raises(UnsupportedCapability):
        await adapter.set_visibility("a.txt", "private")


@pytest.mark.asyncio
async def test_dangling_symlink_is_skipped_when_listing(adapter, tmp_path):
    if not hasattr(os, "symlink") or sys.platform == "win32":
        pytest.skip("Symlinks not supported on this platform")
    await adapter.write("kept.txt", b"x")
    (tmp_path / "root" / "broken.txt").symlink_to(tmp_path / "root" / "gone.txt")

    entries = [entry.path async for entry in adapter.list_contents("")]

    assert entries == ["kept.txt"]
