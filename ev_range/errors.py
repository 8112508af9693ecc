"""Exception types raised by the range analysis pipeline.

Only structural problems (missing input, invalid ranges, malformed
configuration) are raised. Per-record problems are counted in the run
diagnostics instead.
"""

from __future__ import annotations


class InputError(ValueError):
    """Fatal problem with the caller-supplied input; the run is aborted."""


class ConfigError(InputError):
    """Malformed or out-of-bounds configuration value."""


class AnalysisCancelled(RuntimeError):
    """Raised at a chunk boundary once cancellation has been requested."""
