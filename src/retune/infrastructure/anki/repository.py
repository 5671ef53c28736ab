"""
Thin context-managed wrapper around an Anki collection.

Opens the collection with the `anki` library and guarantees it is closed.
"""

import logging
import os
import sys
from pathlib import Path

from anki.collection import Collection

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "User 1"


def default_anki_base() -> Path:
    """Return Anki's data directory for the current platform."""
    if sys.platform == "darwin":
        return Path.home() / "Library/Application Support/Anki2"
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home())) / "Anki2"
    return Path.home() / ".local/share/Anki2"


class AnkiRepository:
    """
    Opens an Anki collection for the duration of a `with` block.

    Args:
        anki_base: Anki data directory (the one holding profile folders).
            Defaults to the platform location.
        profile: Profile folder name.
    """

    def __init__(self, anki_base: Path | None = None, profile: str = DEFAULT_PROFILE):
        self.anki_base = anki_base
        self.profile = profile
        self.col: Collection | None = None

    def __enter__(self) -> "AnkiRepository":
        path = self._resolve_collection_path()
        logger.debug(f"Opening Anki collection at {path}")
        self.col = Collection(str(path))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.col is not None:
            self.col.close()
            self.col = None

    def _resolve_collection_path(self) -> Path:
        base = self.anki_base or default_anki_base()
        path = base / self.profile / "collection.anki2"
        if not path.exists():
            raise FileNotFoundError(f"Anki collection not found at {path}")
        return path

    def find_cards(self, query: str) -> list[int]:
        if self.col is None:
            return []
        return list(self.col.find_cards(query))
