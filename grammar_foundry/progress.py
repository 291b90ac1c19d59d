from __future__ import annotations

import sys
import threading
from dataclasses import dataclass
from typing import IO, Dict, Optional

from tqdm import tqdm

from .models import JobFailure, JobOutcome, Stage


@dataclass(frozen=True)
class CounterSnapshot:
    completed: int
    failed: int


class RunProgress:
    """Run counters and the console progress view, guarded by one lock.

    The overall bar sits on line 0. Every running job gets its own bar on the
    lowest free line below it, removed again when the job is recorded.
    ``record`` is called once per finished job from a worker thread; the
    counters and the bars always move together.
    """

    def __init__(self, total: int, *, disable: bool = False, file: Optional[IO[str]] = None) -> None:
        self.total = total
        self._enabled = not disable
        self._file = file
        self._lock = threading.Lock()
        self._completed = 0
        self._failed = 0
        self._jobs: Dict[str, tqdm] = {}
        self._bar = tqdm(
            total=total,
            bar_format="[{elapsed}] {n_fmt}/{total_fmt} completed{postfix}",
            disable=disable,
            file=file,
            position=0,
            dynamic_ncols=True,
        )
        self._bar.set_postfix_str("0 failed", refresh=False)

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(self._completed, self._failed)

    def running(self) -> Dict[str, str]:
        """Name -> current description of every job with a live bar."""
        with self._lock:
            return {name: bar.desc for name, bar in self._jobs.items()}

    def stage_started(self, name: str, stage: Stage) -> None:
        if not self._enabled:
            return
        with self._lock:
            bar = self._jobs.get(name)
            if bar is None:
                bar = tqdm(
                    total=None,
                    bar_format="{desc} [{elapsed}]",
                    file=self._file,
                    position=self._free_position(),
                    leave=False,
                    dynamic_ncols=True,
                )
                self._jobs[name] = bar
            bar.set_description_str(f"{stage.label} {name}", refresh=True)

    def record(self, outcome: JobOutcome) -> CounterSnapshot:
        with self._lock:
            self._completed += 1
            if not outcome.succeeded:
                self._failed += 1
            job_bar = self._jobs.pop(outcome.name, None)
            if job_bar is not None:
                job_bar.close()
            self._write(self._status_line(outcome))
            self._bar.set_postfix_str(f"{self._failed} failed", refresh=False)
            self._bar.update(1)
            return CounterSnapshot(self._completed, self._failed)

    def close(self) -> CounterSnapshot:
        with self._lock:
            for job_bar in self._jobs.values():
                job_bar.close()
            self._jobs.clear()
            self._bar.set_postfix_str(f"{self._failed} failed", refresh=False)
            self._bar.close()
            self._write(f"All tasks completed. {self._failed} failed.")
            return CounterSnapshot(self._completed, self._failed)

    def _free_position(self) -> int:
        taken = {bar.pos for bar in self._jobs.values()}
        position = 1
        while position in taken or -position in taken:
            position += 1
        return position

    def _write(self, line: str) -> None:
        # tqdm disables a bar once it is closed, so the flag is kept separately.
        if self._enabled:
            tqdm.write(line, file=self._file or sys.stderr)

    @staticmethod
    def _status_line(outcome: JobOutcome) -> str:
        if isinstance(outcome, JobFailure):
            # Full diagnostics go to the log file.
            headline = outcome.message.splitlines()[0] if outcome.message else ""
            return f"Failed for {outcome.name} at {outcome.stage.label}: {headline}"
        return f"Done with {outcome.name}"
