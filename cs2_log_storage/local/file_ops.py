"""
File operations for local log storage.

Provides:
- Atomic JSON writes using temp file + rename
- Byte appends that report the previous file size for rollback
- Whole-file byte reads for log download
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import StorageIOError


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageIOError("create_directory", str(path), e) from e


async def read_json(path: Path) -> Any | None:
    """Read a JSON file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON data or None if file doesn't exist
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
            return json.loads(content) if content.strip() else None
    except json.JSONDecodeError as e:
        raise StorageIOError("parse_json", str(path), e) from e
    except OSError as e:
        raise StorageIOError("read_json", str(path), e) from e


async def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON file atomically using temp file + rename.

    Readers see either the old or the new document, never a mix.

    Args:
        path: Target path for JSON file
        data: Data to serialize as JSON
    """
    await ensure_directory(path.parent)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=".json",
    )
    try:
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2))
            await f.flush()
            os.fsync(f.fileno())

        await aiofiles.os.replace(temp_path, path)
    except Exception as e:
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        raise StorageIOError("write_json", str(path), e) from e


async def file_size(path: Path) -> int:
    """Size of a file in bytes, 0 if it doesn't exist."""
    try:
        if not await aiofiles.os.path.exists(path):
            return 0
        return await aiofiles.os.path.getsize(path)
    except OSError as e:
        raise StorageIOError("stat", str(path), e) from e


async def append_bytes(path: Path, data: bytes) -> int:
    """Append raw bytes to a file.

    Args:
        path: File to append to (created if missing)
        data: Bytes to append

    Returns:
        Size of the file before the append
    """
    await ensure_directory(path.parent)
    previous_size = await file_size(path)

    try:
        async with aiofiles.open(path, "ab") as f:
            await f.write(data)
            await f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise StorageIOError("append_bytes", str(path), e) from e
    return previous_size


async def truncate_file(path: Path, size: int) -> None:
    """Cut a file back to ``size`` bytes.

    Args:
        path: File to truncate
        size: Length to keep
    """
    try:
        await aiofiles.os.wrap(os.truncate)(path, size)
    except OSError as e:
        raise StorageIOError("truncate", str(path), e) from e


async def read_bytes(path: Path) -> bytes | None:
    """Read a whole file as bytes.

    Returns:
        File content, or None if the file doesn't exist
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    except OSError as e:
        raise StorageIOError("read_bytes", str(path), e) from e


async def list_files(path: Path, suffix: str) -> list[str]:
    """List file stems in a directory that end with ``suffix``.

    Args:
        path: Directory to list
        suffix: File name suffix to match (e.g. ".json")

    Returns:
        Sorted names with the suffix stripped
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return []

        names = []
        for entry in await aiofiles.os.listdir(path):
            if entry.startswith(".") or not entry.endswith(suffix):
                continue
            if await aiofiles.os.path.isfile(path / entry):
                names.append(entry[: -len(suffix)])
        return sorted(names)
    except OSError as e:
        raise StorageIOError("list_files", str(path), e) from e
