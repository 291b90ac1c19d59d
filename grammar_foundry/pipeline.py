from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .errors import CompileError, DiscoverError, FetchError, JobError, MergeError
from .models import CatalogEntry, JobFailure, JobOutcome, JobSuccess, RunConfig, Stage
from .registry import LanguageRegistry, load_metadata
from .utils import CommandError, ensure_directory, find_file, run_command

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, Path], None]
Compiler = Callable[[Sequence[Path], Path], None]
StageListener = Callable[[str, Stage], None]


def git_clone(source_locator: str, destination: Path) -> None:
    ensure_directory(destination.parent)
    run_command(["git", "clone", source_locator, str(destination)])


def gcc_compiler(executable: str = "gcc") -> Compiler:
    """Return a compiler that links the given C sources into one shared library."""

    def compile_shared(sources: Sequence[Path], output: Path) -> None:
        ensure_directory(output.parent)
        # Grammars include "tree_sitter/parser.h" relative to the parser source.
        include_dir = sources[0].parent
        command: List[str] = [executable, "-shared", "-fPIC", "-I", str(include_dir), "-o", str(output)]
        command.extend(str(source) for source in sources)
        run_command(command)

    return compile_shared


@dataclass
class JobContext:
    entry: CatalogEntry
    config: RunConfig
    parser_source: Optional[Path] = None
    scanner_source: Optional[Path] = None
    registered: Optional[List[str]] = None

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def checkout_path(self) -> Path:
        return self.config.checkout_path(self.name)

    @property
    def artifact_path(self) -> Path:
        return self.config.artifact_path(self.name)


class GrammarJob:
    """Runs fetch -> discover -> compile -> merge for one catalog entry.

    The first failing stage ends the job with a ``JobFailure``. A failing merge
    is logged and leaves the job successful, since the artifact already exists.
    """

    def __init__(
        self,
        config: RunConfig,
        registry: LanguageRegistry,
        *,
        fetcher: Fetcher | None = None,
        compiler: Compiler | None = None,
        on_stage: StageListener | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.fetcher = fetcher or git_clone
        self.compiler = compiler or gcc_compiler(config.compiler)
        self.on_stage = on_stage
        self._handlers: Dict[Stage, Callable[[JobContext], None]] = {
            Stage.FETCH: self._stage_fetch,
            Stage.DISCOVER: self._stage_discover,
            Stage.COMPILE: self._stage_compile,
            Stage.MERGE_CONFIG: self._stage_merge_config,
        }

    def execute(self, entry: CatalogEntry) -> JobOutcome:
        context = JobContext(entry=entry, config=self.config)
        for stage in Stage.ordered():
            if self.on_stage is not None:
                self.on_stage(entry.name, stage)
            try:
                self._handlers[stage](context)
            except MergeError as exc:
                logger.warning("failed to create config entry for %s: %s", entry.name, exc)
            except JobError as exc:
                logger.warning("failed for %s at %s: %s", entry.name, stage.label, exc)
                return JobFailure(name=entry.name, stage=stage, message=str(exc))
            except Exception as exc:
                if stage is not Stage.MERGE_CONFIG:
                    raise
                # The artifact is built; registry bookkeeping is best-effort.
                logger.warning(
                    "failed to create config entry for %s: %s: %s",
                    entry.name,
                    type(exc).__name__,
                    exc,
                    exc_info=True,
                )
        return JobSuccess(
            name=entry.name,
            artifact_path=context.artifact_path,
            registered=list(context.registered or []),
        )

    def _stage_fetch(self, context: JobContext) -> None:
        destination = context.checkout_path
        if (destination / ".git").exists():
            logger.info("reusing existing checkout of %s at %s", context.name, destination)
            return
        logger.info("cloning %s from %s", context.name, context.entry.source_locator)
        try:
            self.fetcher(context.entry.source_locator, destination)
        except CommandError as exc:
            raise FetchError(f"Failed to clone {context.entry.source_locator}: {exc.diagnostic}") from exc
        except OSError as exc:
            raise FetchError(f"Failed to clone {context.entry.source_locator}: {exc}") from exc

    def _stage_discover(self, context: JobContext) -> None:
        parser_source = find_file(context.checkout_path, self.config.primary_source)
        if parser_source is None:
            raise DiscoverError(f"File {self.config.primary_source} not found in {context.checkout_path}")
        context.parser_source = parser_source
        context.scanner_source = find_file(context.checkout_path, self.config.secondary_source)
        logger.debug(
            "%s sources: %s, %s",
            context.name,
            context.parser_source,
            context.scanner_source or "no scanner",
        )

    def _stage_compile(self, context: JobContext) -> None:
        if context.parser_source is None:
            raise DiscoverError(f"No {self.config.primary_source} located for {context.name}")
        sources = [context.parser_source]
        if context.scanner_source is not None:
            sources.append(context.scanner_source)
        try:
            self.compiler(sources, context.artifact_path)
        except CommandError as exc:
            raise CompileError(f"Failed to build grammar for {context.name}: {exc.diagnostic}") from exc
        except OSError as exc:
            raise CompileError(f"Failed to build grammar for {context.name}: {exc}") from exc
        logger.info("built %s", context.artifact_path)

    def _stage_merge_config(self, context: JobContext) -> None:
        descriptor_path = find_file(context.checkout_path, self.config.metadata_file)
        if descriptor_path is None:
            logger.warning(
                "no %s in %s; %s not added to the registry",
                self.config.metadata_file,
                context.checkout_path,
                context.name,
            )
            return
        metadata = load_metadata(descriptor_path)
        context.registered = self.registry.merge(metadata, context.artifact_path, source=context.name)
