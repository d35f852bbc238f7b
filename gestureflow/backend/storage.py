"""
Document stores for saved diagrams.

Two implementations of the same async interface:
- JsonDirectoryStore: one JSON file per diagram in a local directory
- HttpDocumentStore: a remote REST document store reached with httpx

Store methods raise StorageError on failure; callers decide how to report it.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from ..core.models import SavedFile

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A persistence call failed."""


class DocumentStore(Protocol):
    async def save_file(self, file: SavedFile) -> None: ...

    async def get_all_files(self) -> list[SavedFile]: ...

    async def delete_file(self, file_id: str) -> None: ...


def _newest_first(files: list[SavedFile]) -> list[SavedFile]:
    return sorted(files, key=lambda f: f.info.last_modified, reverse=True)


class JsonDirectoryStore:
    """Saved diagrams as `<id>.json` files in a directory."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, file_id: str) -> Path:
        # IDs are generated hex strings; reject anything path-like
        if not file_id or Path(file_id).name != file_id:
            raise StorageError(f"Invalid file id: {file_id!r}")
        return self._directory / f"{file_id}.json"

    async def save_file(self, file: SavedFile):
        await asyncio.to_thread(self._write, file)
        logger.info("File saved: %s", file.id)

    def _write(self, file: SavedFile):
        path = self._path_for(file.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump(file.to_json_dict(), f, indent=2)
        except OSError as e:
            raise StorageError(f"Error saving file: {e}") from e

    async def get_all_files(self) -> list[SavedFile]:
        return await asyncio.to_thread(self._read_all)

    def _read_all(self) -> list[SavedFile]:
        if not self._directory.exists():
            return []

        files = []
        for path in self._directory.glob("*.json"):
            try:
                with open(path) as f:
                    files.append(SavedFile.model_validate(json.load(f)))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning("Skipping unreadable saved file %s: %s", path, e)
        return _newest_first(files)

    async def delete_file(self, file_id: str):
        path = self._path_for(file_id)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Error deleting file: {e}") from e
        logger.info("File deleted: %s", file_id)


class HttpDocumentStore:
    """
    Saved diagrams in a remote document store.

    Endpoints (relative to base_url):
        PUT    /diagrams/{id}   create or overwrite
        GET    /diagrams        list all
        DELETE /diagrams/{id}   remove
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        )

    async def save_file(self, file: SavedFile):
        try:
            async with self._client() as client:
                response = await client.put(f"/diagrams/{file.id}", json=file.to_json_dict())
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error saving file %s to document store: %s", file.id, e)
            raise StorageError(f"Error saving file: {e}") from e
        logger.info("File saved to document store: %s", file.id)

    async def get_all_files(self) -> list[SavedFile]:
        try:
            async with self._client() as client:
                response = await client.get("/diagrams")
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching files from document store: %s", e)
            raise StorageError(f"Error fetching files: {e}") from e

        files = []
        for item in payload if isinstance(payload, list) else []:
            try:
                files.append(SavedFile.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed saved file: %s", e)
        return _newest_first(files)

    async def delete_file(self, file_id: str):
        try:
            async with self._client() as client:
                response = await client.delete(f"/diagrams/{file_id}")
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error deleting file %s from document store: %s", file_id, e)
            raise StorageError(f"Error deleting file: {e}") from e
        logger.info("File deleted from document store: %s", file_id)
