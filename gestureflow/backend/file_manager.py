"""
File Manager - Current file, saved files and import/export.

Local state is updated optimistically: a save or delete changes the saved
files list first and then calls the store. A failed store call is reported
through notify() and never rolls back the local change.
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from ..core.models import DiagramDocument, FileInfo, SavedFile, generate_id
from ..core.validation import DocumentFormatError, parse_document_json
from .diagram_controller import DiagramController
from .storage import DocumentStore, StorageError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class FileManager:
    """Coordinates the controller with a document store."""

    def __init__(
        self,
        controller: DiagramController,
        store: DocumentStore,
        notify: Callable[[str, str], None],
    ):
        self._controller = controller
        self._store = store
        self._notify = notify
        self._current_file: Optional[FileInfo] = None
        self._saved_files: list[SavedFile] = []

    @property
    def current_file(self) -> Optional[FileInfo]:
        return self._current_file

    @property
    def saved_files(self) -> list[SavedFile]:
        return list(self._saved_files)

    def _document(self) -> DiagramDocument:
        return self._controller.get_state().to_document()

    # --- Current File ---

    def create_new_file(self) -> FileInfo:
        """Start an empty, unsaved diagram."""
        self._controller.clear_diagram()
        self._current_file = FileInfo(name="Untitled Diagram", last_modified=_now_ms())
        return self._current_file

    def open_file(self, file_path: str | Path) -> FileInfo:
        """
        Import a diagram from a JSON file on disk.

        Raises:
            FileNotFoundError: if the file does not exist
            OSError: if the path cannot be read (a directory, no permission)
            DocumentFormatError: if the file is not a valid diagram
                (the current diagram is left unchanged)
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Diagram file not found: {path}")

        try:
            document = parse_document_json(path.read_bytes())
        except DocumentFormatError as e:
            logger.warning("Rejected diagram file %s: %s", path, e)
            self._notify(str(e), "error")
            raise

        self._controller.load_diagram(document.nodes, document.connections)
        self._current_file = FileInfo(
            id=generate_id(),
            name=path.stem,
            last_modified=int(path.stat().st_mtime * 1000),
        )
        return self._current_file

    def rename_file(self, name: str):
        if self._current_file is not None:
            self._current_file = self._current_file.model_copy(update={"name": name})

    def close_file(self):
        self._controller.clear_diagram()
        self._current_file = None

    def export_json(self, file_path: str | Path) -> Optional[Path]:
        """Write the diagram's nodes and connections to a JSON file."""
        if self._current_file is None:
            return None

        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self._document().to_json_dict(), f, indent=2)
        return path

    # --- Saved Files ---

    async def refresh_saved_files(self) -> list[SavedFile]:
        """Reload the saved files list; a failing store yields an empty list."""
        try:
            self._saved_files = await self._store.get_all_files()
        except StorageError as e:
            logger.error("Could not load saved files: %s", e)
            self._saved_files = []
        return self.saved_files

    async def save(self) -> bool:
        """
        Save the current diagram to the store.

        Returns True on success, False if there is no current file or the
        store call failed (the local saved list keeps the new version).
        """
        if self._current_file is None:
            return False

        info = self._current_file.model_copy(update={"last_modified": _now_ms()})
        self._current_file = info
        saved = SavedFile(id=info.id, info=info, data=self._document())

        for i, existing in enumerate(self._saved_files):
            if existing.id == saved.id:
                self._saved_files[i] = saved
                break
        else:
            self._saved_files.insert(0, saved)

        try:
            await self._store.save_file(saved)
        except StorageError as e:
            logger.error("Save failed for %s: %s", saved.id, e)
            self._notify("Failed to save diagram", "error")
            return False

        self._notify("Diagram saved", "success")
        return True

    def load_saved_file(self, file_id: str) -> Optional[FileInfo]:
        for saved in self._saved_files:
            if saved.id == file_id:
                self._controller.load_diagram(saved.data.nodes, saved.data.connections)
                self._current_file = saved.info
                return saved.info
        return None

    async def delete_saved_file(self, file_id: str) -> bool:
        self._saved_files = [f for f in self._saved_files if f.id != file_id]
        try:
            await self._store.delete_file(file_id)
        except StorageError as e:
            logger.error("Delete failed for %s: %s", file_id, e)
            self._notify("Failed to delete diagram", "error")
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "current_file": self._current_file.model_dump(by_alias=True) if self._current_file else None,
            "saved_files": [f.info.model_dump(by_alias=True) for f in self._saved_files],
        }
