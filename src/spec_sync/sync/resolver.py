"""Conflict resolution strategies for the sync engine.

A resolver decides *which side wins*; the engine then carries out the
decision (push with force, or pull and overwrite).  Resolvers do no I/O.

- ``LocalWinsResolver`` (``ours``): keep local content and re-push it.
- ``RemoteWinsResolver`` (``theirs``): take the remote content.
- ``ManualResolver`` (``manual`` or unset): leave the conflict for a human;
  the engine reports it as a failed ``conflict`` result.
- ``InteractiveResolver`` (``interactive``): reserved; always reports
  that interactive resolution is unavailable.

The ``create_resolver()`` factory maps strategy names to resolvers.
"""

from __future__ import annotations

import logging
from typing import Protocol

from spec_sync.sync.models import ConflictInfo, ConflictStrategy

logger = logging.getLogger(__name__)

LOCAL = "local"
REMOTE = "remote"
MANUAL = "manual"
UNAVAILABLE = "unavailable"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, conflict: ConflictInfo) -> str:
        """Decide the outcome for a conflict.

        Args:
            conflict: Details about the conflicting spec.

        Returns:
            ``"local"``, ``"remote"``, ``"manual"`` or ``"unavailable"``.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class LocalWinsResolver:
    """Always resolve conflicts in favour of local content."""

    def resolve(self, conflict: ConflictInfo) -> str:
        logger.info("Keeping local content for %s", conflict.spec_name)
        return LOCAL


class RemoteWinsResolver:
    """Always resolve conflicts in favour of remote content."""

    def resolve(self, conflict: ConflictInfo) -> str:
        logger.info("Taking remote content for %s", conflict.spec_name)
        return REMOTE


class ManualResolver:
    """Leave conflicts unresolved."""

    def resolve(self, conflict: ConflictInfo) -> str:
        logger.warning(
            "Conflict in %s needs manual resolution: %s",
            conflict.spec_name,
            "; ".join(conflict.conflicts) or "local and remote diverged",
        )
        return MANUAL


class InteractiveResolver:
    """Placeholder for prompt-driven resolution; never resolves."""

    def resolve(self, conflict: ConflictInfo) -> str:
        return UNAVAILABLE


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    ConflictStrategy.OURS.value: LocalWinsResolver,
    ConflictStrategy.THEIRS.value: RemoteWinsResolver,
    ConflictStrategy.MANUAL.value: ManualResolver,
    ConflictStrategy.INTERACTIVE.value: InteractiveResolver,
}


def create_resolver(
    strategy: ConflictStrategy | str | None,
) -> ConflictResolver:
    """Create a conflict resolver for the given strategy.

    Args:
        strategy: ``"ours"``, ``"theirs"``, ``"manual"``,
            ``"interactive"`` or ``None`` (same as ``"manual"``).

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy is not recognised.
    """
    if strategy is None:
        key = ConflictStrategy.MANUAL.value
    elif isinstance(strategy, ConflictStrategy):
        key = strategy.value
    else:
        key = strategy
    cls = _STRATEGY_MAP.get(key)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. "
            f"Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
