"""
Exception hierarchy for the clustering pipeline.
Every failure surfaced to the operator derives from ToponymClusterError.
"""

from __future__ import annotations

from typing import Optional


class ToponymClusterError(Exception):
    """Base class; carries the phase and the suffix node involved, if any."""

    def __init__(self, message: str, *, phase: Optional[str] = None, node: Optional[str] = None):
        self.phase = phase
        self.node = node
        context = []
        if phase:
            context.append(f"phase={phase}")
        if node is not None:
            context.append(f"node={node!r}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class CorpusFormatError(ToponymClusterError):
    """A corpus row does not have the expected shape."""


class ConfigurationError(ToponymClusterError, ValueError):
    """A run parameter is outside its valid range."""


class PreconditionError(ToponymClusterError):
    """A phase was invoked before the phase it depends on has run."""


class AggregationError(ToponymClusterError):
    """The subsumed-count pass cannot make progress."""


class UnknownNGramError(ToponymClusterError, KeyError):
    """The language model was queried for an n-gram absent from the corpus."""

    def __str__(self) -> str:
        # KeyError would wrap the message in quotes
        return Exception.__str__(self)


class InsufficientDataError(ToponymClusterError):
    """Fewer than two records under a cluster; no distance statistic exists."""
