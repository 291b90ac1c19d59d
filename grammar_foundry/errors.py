from __future__ import annotations


class GrammarFoundryError(RuntimeError):
    """Base class for every error raised by the grammar build pipeline."""


class ConfigurationError(GrammarFoundryError):
    """Raised when the run configuration is invalid. Fatal to the whole run."""


class CatalogError(GrammarFoundryError):
    """Raised when the parser catalog cannot be fetched or parsed. Fatal to the whole run."""


class JobError(GrammarFoundryError):
    """Raised by a single job stage. Never escapes the job that raised it."""


class FetchError(JobError):
    """Raised when the grammar repository cannot be cloned."""


class DiscoverError(JobError):
    """Raised when the required grammar source file is missing from the checkout."""


class CompileError(JobError):
    """Raised when the native compiler rejects the grammar sources."""


class MergeError(JobError):
    """Raised when the metadata descriptor or the registry document cannot be merged."""
