"""Fetch, compile and register Tree-sitter grammars in parallel."""

from .catalog import ParserCatalog, scrape_parsers
from .coordinator import run_pipeline
from .models import CatalogEntry, JobFailure, JobSuccess, RunConfig, RunSummary, Stage
from .pipeline import GrammarJob
from .registry import LanguageRegistry

__all__ = [
    "CatalogEntry",
    "GrammarJob",
    "JobFailure",
    "JobSuccess",
    "LanguageRegistry",
    "ParserCatalog",
    "RunConfig",
    "RunSummary",
    "Stage",
    "run_pipeline",
    "scrape_parsers",
]
