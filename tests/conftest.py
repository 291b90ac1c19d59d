from __future__ import annotations

from pathlib import Path

import pytest

from grammar_foundry.models import RunConfig


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> RunConfig:
        settings = {
            "output_dir": tmp_path / "shared_libs",
            "source_dir": tmp_path / "shared_libs_src",
            "registry_path": tmp_path / "config.json",
            "pool_size": 4,
            "artifact_suffix": "so",
        }
        settings.update(overrides)
        return RunConfig(**settings)

    return _make
