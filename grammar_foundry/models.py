from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Optional, Union


class Stage(Enum):
    FETCH = auto()
    DISCOVER = auto()
    COMPILE = auto()
    MERGE_CONFIG = auto()

    @classmethod
    def ordered(cls) -> Iterable["Stage"]:
        return (cls.FETCH, cls.DISCOVER, cls.COMPILE, cls.MERGE_CONFIG)

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class CatalogEntry:
    """One grammar repository advertised by the parser catalog."""

    name: str
    source_locator: str


@dataclass(frozen=True)
class GrammarMetadata:
    name: str
    extension: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrammarMetadata":
        # Only the first declared file type counts; anything but a string there means none.
        file_types = data.get("file-types")
        first = file_types[0] if isinstance(file_types, list) and file_types else None
        return cls(name=data["name"], extension=first if isinstance(first, str) else "")


@dataclass(frozen=True)
class MetadataDescriptor:
    """Parsed ``tree-sitter.json`` found inside a grammar checkout.

    Only the ``grammars`` array is consulted. Elements without a string ``name``
    are ignored, a missing array means the checkout declares no grammars.
    """

    grammars: List[GrammarMetadata] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetadataDescriptor":
        raw_grammars = data.get("grammars")
        if not isinstance(raw_grammars, list):
            return cls()
        grammars = [
            GrammarMetadata.from_dict(item)
            for item in raw_grammars
            if isinstance(item, dict) and isinstance(item.get("name"), str)
        ]
        return cls(grammars=grammars)


@dataclass(frozen=True)
class JobSuccess:
    name: str
    artifact_path: Path
    registered: List[str] = field(default_factory=list)

    succeeded: ClassVar[bool] = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": "completed",
            "artifact_path": str(self.artifact_path),
            "registered": list(self.registered),
        }


@dataclass(frozen=True)
class JobFailure:
    name: str
    stage: Stage
    message: str

    succeeded: ClassVar[bool] = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": "failed",
            "stage": self.stage.label,
            "message": self.message,
        }


JobOutcome = Union[JobSuccess, JobFailure]


def _default_artifact_suffix() -> str:
    if sys.platform == "darwin":
        return "dylib"
    if sys.platform.startswith("win"):
        return "dll"
    return "so"


@dataclass(frozen=True)
class RunConfig:
    """Settings shared by every job of one run. Built once, never mutated."""

    output_dir: Path
    source_dir: Path
    registry_path: Path
    pool_size: int = 10
    languages: FrozenSet[str] = frozenset()
    compiler: str = "gcc"
    artifact_suffix: str = field(default_factory=_default_artifact_suffix)
    primary_source: str = "parser.c"
    secondary_source: str = "scanner.c"
    metadata_file: str = "tree-sitter.json"

    def __post_init__(self) -> None:
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "source_dir", Path(self.source_dir))
        object.__setattr__(self, "registry_path", Path(self.registry_path))
        object.__setattr__(self, "languages", frozenset(self.languages))

    def checkout_path(self, name: str) -> Path:
        return self.source_dir / name

    def artifact_path(self, name: str) -> Path:
        return self.output_dir / f"lib{name}.{self.artifact_suffix}"


@dataclass
class RunSummary:
    completed: int = 0
    failed: int = 0
    outcomes: Dict[str, JobOutcome] = field(default_factory=dict)

    @property
    def failures(self) -> List[JobFailure]:
        return [outcome for outcome in self.outcomes.values() if isinstance(outcome, JobFailure)]

    @property
    def successes(self) -> List[JobSuccess]:
        return [outcome for outcome in self.outcomes.values() if isinstance(outcome, JobSuccess)]

    def get(self, name: str) -> Optional[JobOutcome]:
        return self.outcomes.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": self.completed,
            "failed": self.failed,
            "jobs": [self.outcomes[name].to_dict() for name in sorted(self.outcomes)],
        }
