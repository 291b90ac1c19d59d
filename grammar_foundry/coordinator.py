from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional

from .catalog import dedupe_entries
from .errors import ConfigurationError
from .models import CatalogEntry, JobFailure, JobOutcome, RunConfig, RunSummary, Stage
from .pipeline import Compiler, Fetcher, GrammarJob
from .progress import RunProgress
from .registry import LanguageRegistry

logger = logging.getLogger(__name__)


def select_entries(entries: Iterable[CatalogEntry], languages: Iterable[str]) -> List[CatalogEntry]:
    """Apply the name allow-list. An empty allow-list keeps every entry.

    Entries sharing a name would share a checkout and an artifact, so only one
    per name is kept.
    """

    wanted = set(languages)
    unique = dedupe_entries((entry.name, entry.source_locator) for entry in sorted(entries, key=_entry_key))
    if wanted:
        known = {entry.name for entry in unique}
        for missing in sorted(wanted - known):
            logger.warning("requested language %s is not in the catalog", missing)
        unique = {entry for entry in unique if entry.name in wanted}
    return sorted(unique, key=_entry_key)


def _entry_key(entry: CatalogEntry) -> tuple:
    return (entry.name, entry.source_locator)


def validate_config(config: RunConfig) -> None:
    if config.pool_size < 1:
        raise ConfigurationError(f"Worker pool size must be at least 1, got {config.pool_size}")


class _StageTracker:
    """Remembers the stage each job is in, for converting unexpected errors."""

    def __init__(self, progress: RunProgress) -> None:
        self.progress = progress
        self.current: Dict[str, Stage] = {}

    def __call__(self, name: str, stage: Stage) -> None:
        self.current[name] = stage
        self.progress.stage_started(name, stage)


def run_pipeline(
    entries: Iterable[CatalogEntry],
    config: RunConfig,
    *,
    fetcher: Optional[Fetcher] = None,
    compiler: Optional[Compiler] = None,
    show_progress: bool = True,
) -> RunSummary:
    """Build every selected grammar on a bounded thread pool.

    Blocks until every dispatched job has finished. Job failures are counted
    and reported; only an invalid configuration raises.
    """

    validate_config(config)
    selected = select_entries(entries, config.languages)

    logger.info("building %d grammars with %d workers", len(selected), config.pool_size)
    progress = RunProgress(len(selected), disable=not show_progress)
    tracker = _StageTracker(progress)
    job = GrammarJob(
        config,
        LanguageRegistry(config.registry_path),
        fetcher=fetcher,
        compiler=compiler,
        on_stage=tracker,
    )
    summary = RunSummary()

    def _task(entry: CatalogEntry) -> JobOutcome:
        try:
            outcome = job.execute(entry)
        except Exception as exc:
            stage = tracker.current.get(entry.name, Stage.FETCH)
            logger.exception("unexpected error for %s at %s", entry.name, stage.label)
            outcome = JobFailure(name=entry.name, stage=stage, message=f"{type(exc).__name__}: {exc}")
        if outcome.succeeded:
            logger.info("Done with %s", entry.name)
        progress.record(outcome)
        return outcome

    try:
        with ThreadPoolExecutor(max_workers=config.pool_size, thread_name_prefix="grammar") as pool:
            futures: Dict[Future[JobOutcome], CatalogEntry] = {
                pool.submit(_task, entry): entry for entry in selected
            }
            for future in as_completed(futures):
                outcome = future.result()
                summary.outcomes[outcome.name] = outcome
    finally:
        final = progress.close()

    summary.completed = final.completed
    summary.failed = final.failed
    logger.info("All tasks completed. %d failed.", summary.failed)
    return summary
