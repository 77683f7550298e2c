"""
Boundary editor state machine.

Owns the committed territory shape of one editing session and its undo
history. States:

    EMPTY          committed shape is None
    HAS_TERRITORY  committed shape is a valid Polygon/MultiPolygon

Commits are atomic: they either fully apply (history pushed, shape
replaced) or leave both untouched.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import structlog
from shapely.geometry import MultiPolygon, Polygon

from brushmap.geometry import primitives
from brushmap.geometry.normalizer import to_multipolygon
from brushmap.geometry.primitives import Polygonal
from brushmap.geometry.stroke import BrushMode
from brushmap.utils.exceptions import GeometryOperationError

logger = structlog.get_logger(__name__)


class EditorState(str, Enum):
    EMPTY = "empty"
    HAS_TERRITORY = "has_territory"


class CommitStatus(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of one commit; ``shape`` is the committed shape afterwards."""

    status: CommitStatus
    shape: Optional[Polygonal]
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status is CommitStatus.APPLIED


class BoundaryEditor:
    """
    Accumulates stroke shapes into a committed territory.

    Args:
        max_history: Keep at most this many undo steps (None = unbounded)
        simplify_vertex_limit: Simplify the committed shape once it has
            more vertices than this (None = never)
        simplify_tolerance: Simplification tolerance in degrees
    """

    def __init__(self, max_history: Optional[int] = None,
                 simplify_vertex_limit: Optional[int] = None,
                 simplify_tolerance: float = 0.0005):
        self.max_history = max_history or None
        self.simplify_vertex_limit = simplify_vertex_limit or None
        self.simplify_tolerance = simplify_tolerance
        self._committed: Optional[Polygonal] = None
        self._history: List[Optional[Polygonal]] = []

    @property
    def state(self) -> EditorState:
        return EditorState.EMPTY if self._committed is None else EditorState.HAS_TERRITORY

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def history(self) -> tuple:
        """Read-only copy of the history, oldest first."""
        return tuple(self._history)

    def current_shape(self) -> Optional[Polygonal]:
        return self._committed

    def to_multipolygon(self) -> Optional[MultiPolygon]:
        return to_multipolygon(self._committed)

    def commit(self, shape, mode=BrushMode.ADD) -> CommitResult:
        """Union (add) or subtract (erase) a stroke shape into the territory."""
        mode = BrushMode.parse(mode)

        if not isinstance(shape, (Polygon, MultiPolygon)) or shape.is_empty:
            return self._reject(mode, f"stroke shape must be a non-empty polygon, got "
                                      f"{getattr(shape, 'geom_type', type(shape).__name__)}")

        current = self._committed

        try:
            if mode is BrushMode.ADD:
                if current is None:
                    result = primitives.clean(shape)
                else:
                    result = primitives.union(current, shape)
                if result is None:
                    return self._reject(mode, "stroke shape has no area")
            else:
                if current is None:
                    return CommitResult(CommitStatus.NOOP, None, "nothing to erase")
                result = primitives.difference(current, shape)

            result = self._maybe_simplify(result)
        except GeometryOperationError as e:
            return self._reject(mode, str(e))

        self._push_history(current)
        self._committed = result

        logger.debug("Stroke committed",
                     mode=mode.value,
                     state=self.state.value,
                     vertices=primitives.vertex_count(result),
                     history=len(self._history))
        return CommitResult(CommitStatus.APPLIED, result)

    def undo(self) -> bool:
        """Restore the shape from before the last commit. No-op on empty history."""
        if not self._history:
            return False
        self._committed = self._history.pop()
        return True

    def reset(self) -> None:
        self._committed = None
        self._history.clear()

    def seed(self, initial: Optional[Polygonal]) -> None:
        """Start from a previously persisted boundary; history is cleared."""
        self._committed = primitives.clean(initial)
        self._history.clear()

    def _push_history(self, previous: Optional[Polygonal]) -> None:
        self._history.append(previous)
        if self.max_history and len(self._history) > self.max_history:
            del self._history[:len(self._history) - self.max_history]

    def _maybe_simplify(self, shape: Optional[Polygonal]) -> Optional[Polygonal]:
        if shape is None or not self.simplify_vertex_limit:
            return shape
        if primitives.vertex_count(shape) <= self.simplify_vertex_limit:
            return shape
        return primitives.simplify(shape, self.simplify_tolerance)

    def _reject(self, mode: BrushMode, reason: str) -> CommitResult:
        logger.warning("Commit rejected", mode=mode.value, reason=reason)
        return CommitResult(CommitStatus.REJECTED, self._committed, reason)
