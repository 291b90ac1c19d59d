"""Shared ``known_languages`` registry document.

Every job that builds a grammar merges its metadata into one JSON document.
The whole read -> merge -> write cycle runs under a lock keyed by the resolved
document path, so concurrent merges never lose each other's entries.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import MergeError
from .models import MetadataDescriptor
from .utils import dump_json

logger = logging.getLogger(__name__)

REGISTRY_KEY = "known_languages"

_PATH_LOCKS: Dict[Path, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(path, threading.Lock())


def load_metadata(path: str | Path) -> MetadataDescriptor:
    """Parse a ``tree-sitter.json`` descriptor."""

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError) as exc:
        raise MergeError(f"Cannot read metadata descriptor {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise MergeError(f"Metadata descriptor {path} is not a JSON object")
    return MetadataDescriptor.from_dict(data)


class LanguageRegistry:
    """Mutex-guarded handle on the registry document.

    Callers never touch the document directly; ``merge`` is the only write.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = _lock_for(self.path.resolve())
        # grammar name -> job that last wrote it during this run
        self._owners: Dict[str, str] = {}

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {REGISTRY_KEY: {}}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, RecursionError) as exc:
            raise MergeError(f"Registry document {self.path} is unreadable: {exc}") from exc
        if not isinstance(document, dict):
            raise MergeError(f"Registry document {self.path} is not a JSON object")
        languages = document.setdefault(REGISTRY_KEY, {})
        if not isinstance(languages, dict):
            raise MergeError(f"'{REGISTRY_KEY}' in {self.path} is not a JSON object")
        return document

    def load(self) -> Dict[str, Dict[str, str]]:
        with self._lock:
            return dict(self._read_document()[REGISTRY_KEY])

    def merge(
        self,
        metadata: MetadataDescriptor,
        artifact_path: str | Path,
        *,
        source: Optional[str] = None,
    ) -> List[str]:
        """Upsert every grammar of ``metadata`` pointing at ``artifact_path``.

        Returns the grammar names written. Raises ``MergeError`` when the
        existing document cannot be parsed or the new one cannot be written.
        """

        written: List[str] = []
        with self._lock:
            document = self._read_document()
            languages = document[REGISTRY_KEY]
            for grammar in metadata.grammars:
                if grammar.name in written:
                    logger.warning(
                        "grammar %s declared twice by %s; keeping the last declaration",
                        grammar.name,
                        source or artifact_path,
                    )
                self._note_owner(grammar.name, source)
                languages[grammar.name] = {
                    "path": str(artifact_path),
                    "extension": grammar.extension,
                }
                written.append(grammar.name)
            try:
                dump_json(self.path, document)
            except OSError as exc:
                raise MergeError(f"Cannot write registry document {self.path}: {exc}") from exc
        return written

    def _note_owner(self, name: str, source: Optional[str]) -> None:
        if source is None:
            return
        previous = self._owners.get(name)
        if previous is not None and previous != source:
            logger.warning(
                "grammar %s registered by both %s and %s; %s wins",
                name,
                previous,
                source,
                source,
            )
        self._owners[name] = source
