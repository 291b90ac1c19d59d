from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from grammar_foundry.utils import CommandError


class FakeToolchain:
    """Stands in for git and gcc.

    ``trees`` maps a source locator to the files a clone of it produces;
    locators not listed fail like an unreachable remote. Compiling writes the
    joined source names into the artifact so tests can see what was linked.
    """

    def __init__(self, trees: Dict[str, Dict[str, str]], *, broken_compile: Sequence[str] = ()) -> None:
        self.trees = trees
        self.broken_compile = set(broken_compile)
        self.compiled: Dict[str, List[Path]] = {}
        self.fetched: List[str] = []

    def fetch(self, source_locator: str, destination: Path) -> None:
        self.fetched.append(source_locator)
        files = self.trees.get(source_locator)
        if files is None:
            raise CommandError(
                ["git", "clone", source_locator, str(destination)],
                128,
                "",
                f"fatal: repository '{source_locator}' not found",
            )
        for relative, content in files.items():
            path = destination / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

    def compile(self, sources: Sequence[Path], output: Path) -> None:
        if output.stem.removeprefix("lib") in self.broken_compile:
            raise CommandError(["gcc", "-o", str(output)], 1, "", "parser.c:1: error: expected ';'")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text("\n".join(source.name for source in sources))
        self.compiled[output.name] = list(sources)


def grammar_tree(name: str, *, scanner: bool = False, metadata: Optional[dict] = None) -> Dict[str, str]:
    files = {"src/parser.c": f"/* {name} */"}
    if scanner:
        files["src/scanner.c"] = "/* scanner */"
    if metadata is not None:
        files["tree-sitter.json"] = json.dumps(metadata)
    return files


def metadata_for(*names: str) -> dict:
    return {"grammars": [{"name": name, "file-types": [name]} for name in names]}


