from __future__ import annotations

import json
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Sequence

SKIPPED_DIRECTORIES = frozenset({".git"})


class CommandError(RuntimeError):
    """Raised when an external tool exits with a non-zero status code."""

    def __init__(self, command: Sequence[str], returncode: int, stdout: str, stderr: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"{' '.join(self.command)} exited with status {returncode}: {self.diagnostic}")

    @property
    def diagnostic(self) -> str:
        """Captured stderr, falling back to stdout for tools that report there."""
        return (self.stderr or self.stdout).strip()


def run_command(
    command: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a blocking subprocess and return the completed process."""

    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    result = subprocess.run(
        [str(part) for part in command],
        cwd=str(cwd) if cwd else None,
        env=process_env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        text=True,
        errors="replace",
        check=False,
    )
    if check and result.returncode != 0:
        raise CommandError(command, result.returncode, result.stdout, result.stderr)
    return result


def ensure_directory(path: str | Path) -> Path:
    """Create a directory and return its Path object."""

    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def find_file(root: str | Path, filename: str) -> Optional[Path]:
    """Depth-first search for ``filename`` below ``root``.

    Entries of each directory are visited in lexicographic order, so the first
    match is the same on every filesystem. ``.git`` directories are not searched.
    """

    root = Path(root)
    try:
        entries = sorted(root.iterdir(), key=lambda entry: entry.name)
    except (FileNotFoundError, NotADirectoryError, PermissionError):
        return None
    for entry in entries:
        if entry.is_file() and entry.name == filename:
            return entry
        if entry.is_dir() and not entry.is_symlink() and entry.name not in SKIPPED_DIRECTORIES:
            found = find_file(entry, filename)
            if found is not None:
                return found
    return None


def dump_json(path: str | Path, payload: Mapping[str, object], *, indent: int = 2) -> None:
    """Replace ``path`` with ``payload`` as sorted JSON plus a trailing newline.

    The document is written to a sibling temporary file first and moved into
    place, so a concurrent reader sees either the old or the new document.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=indent, sort_keys=True) + "\n"
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
