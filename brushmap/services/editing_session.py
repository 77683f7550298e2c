"""
Editing sessions: the adapter between pointer/keyboard events and the editor.

One EditingSession per open drawing tool. Pointer handling is a small
state machine:

    IDLE --pointer_down--> DRAGGING --pointer_up--> IDLE

pointer_move previews the brush cursor while IDLE and extends the live
stroke while DRAGGING. Keyboard shortcuts map onto the same operations.
"""

import threading
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Dict, List, Optional

import structlog

from brushmap.config.settings import settings
from brushmap.geometry import primitives
from brushmap.geometry.editor import BoundaryEditor, CommitResult, CommitStatus
from brushmap.geometry.normalizer import shape_feature, to_feature
from brushmap.geometry.primitives import Point, Polygonal
from brushmap.geometry.sizing import RESIZE_STEP, BrushSizing
from brushmap.geometry.stroke import BrushMode, StrokeAccumulator
from brushmap.utils.exceptions import SessionNotFoundError

logger = structlog.get_logger(__name__)


class PointerState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class EditingSession:
    """
    One brush editing session over one territory boundary.

    Args:
        sizing: Brush sizing profile for this tool
        territory_id: Territory being edited, if any (None for a new drawing)
        brush_value: Initial 0-100 control value
        mode: Initial brush mode
    """

    def __init__(self, sizing: BrushSizing, territory_id: Optional[str] = None,
                 brush_value: Optional[float] = None, mode=BrushMode.ADD,
                 editor: Optional[BoundaryEditor] = None,
                 strokes: Optional[StrokeAccumulator] = None,
                 profile: Optional[str] = None):
        self.id = uuid.uuid4().hex
        self.sizing = sizing
        self.profile = profile
        self.territory_id = territory_id
        self.mode = BrushMode.parse(mode)
        self.brush_value = sizing.clamp_value(
            settings.BRUSH_DEFAULT_VALUE if brush_value is None else brush_value
        )
        self.editor = editor or BoundaryEditor(
            max_history=settings.MAX_HISTORY,
            simplify_vertex_limit=settings.SIMPLIFY_VERTEX_LIMIT,
            simplify_tolerance=settings.SIMPLIFY_TOLERANCE_DEG
        )
        self.strokes = strokes or StrokeAccumulator(
            steps=settings.CIRCLE_STEPS,
            spacing_factor=settings.STROKE_SPACING_FACTOR
        )
        self.cursor: Optional[Point] = None
        self.last_commit: Optional[CommitResult] = None
        self.warnings: List[str] = []
        self.last_active = time.monotonic()

    @property
    def radius_km(self) -> float:
        return self.sizing.radius_km(self.brush_value)

    @property
    def pointer_state(self) -> PointerState:
        return PointerState.DRAGGING if self.strokes.is_active else PointerState.IDLE

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def seed(self, boundary: Optional[Polygonal]) -> None:
        """Load an existing boundary for editing"""
        self.strokes.cancel()
        self.editor.seed(boundary)

    # Pointer events

    def pointer_down(self, point) -> Optional[Polygonal]:
        self.cursor = Point.of(point)
        return self.strokes.begin(self.cursor, self.radius_km, self.mode)

    def pointer_move(self, point) -> Optional[Polygonal]:
        self.cursor = Point.of(point)
        if self.pointer_state is PointerState.DRAGGING:
            return self.strokes.extend(self.cursor)
        return None

    def pointer_up(self, point=None) -> CommitResult:
        """Finish the live stroke and commit it into the territory"""
        if self.pointer_state is PointerState.IDLE:
            return CommitResult(CommitStatus.NOOP, self.editor.current_shape(), "no stroke in progress")

        if point is not None:
            self.pointer_move(point)

        mode = self.strokes.stroke.mode
        shape = self.strokes.end()
        if shape is None:
            result = CommitResult(CommitStatus.NOOP, self.editor.current_shape(), "empty stroke")
        else:
            result = self.editor.commit(shape, mode)

        if result.status is CommitStatus.REJECTED:
            self.warnings.append("Your last stroke didn't apply, try again")
        self.last_commit = result
        return result

    # Brush controls

    def set_mode(self, mode) -> BrushMode:
        self.mode = BrushMode.parse(mode)
        return self.mode

    def toggle_mode(self) -> BrushMode:
        self.mode = self.mode.toggled()
        return self.mode

    def set_brush_value(self, value: float) -> float:
        self.brush_value = self.sizing.clamp_value(value)
        return self.brush_value

    def resize(self, delta: float) -> float:
        self.brush_value = self.sizing.step(self.brush_value, delta)
        return self.brush_value

    # Session operations

    def undo(self) -> bool:
        self.strokes.cancel()
        return self.editor.undo()

    def finish(self):
        """The finished boundary as a MultiPolygon, or None when nothing was drawn.

        A stroke still in progress is discarded.
        """
        self.strokes.cancel()
        return self.editor.to_multipolygon()

    def cancel(self) -> None:
        self.strokes.cancel()
        self.editor.reset()
        self.cursor = None

    def handle_key(self, key: str, ctrl: bool = False) -> Optional[str]:
        """
        Apply a keyboard shortcut and return the action name.

        Escape cancel, Enter finish, Ctrl+Z / Backspace undo, b add,
        e erase, x toggle mode, [ and ] shrink and grow the brush.
        """
        if key == "Escape":
            self.cancel()
            return "cancel"
        if key == "Enter":
            self.finish()
            return "finish"
        if (key.lower() == "z" and ctrl) or key == "Backspace":
            self.undo()
            return "undo"
        if ctrl:
            return None
        if key in ("b", "B"):
            self.set_mode(BrushMode.ADD)
            return "mode_add"
        if key in ("e", "E"):
            self.set_mode(BrushMode.ERASE)
            return "mode_erase"
        if key in ("x", "X"):
            self.toggle_mode()
            return "toggle_mode"
        if key == "[":
            self.resize(-RESIZE_STEP)
            return "shrink"
        if key == "]":
            self.resize(RESIZE_STEP)
            return "grow"
        return None

    # Live preview

    def cursor_shape(self) -> Optional[Polygonal]:
        """Brush outline under the cursor"""
        if self.cursor is None:
            return None
        return primitives.circle(self.cursor, self.radius_km, steps=settings.CIRCLE_STEPS)

    def snapshot(self) -> Dict:
        """Everything a rendering adapter needs to redraw, as plain data"""
        committed = self.editor.current_shape()
        return {
            "session_id": self.id,
            "territory_id": self.territory_id,
            "profile": self.profile,
            "state": self.editor.state.value,
            "pointer_state": self.pointer_state.value,
            "mode": self.mode.value,
            "brush_value": self.brush_value,
            "radius_km": round(self.radius_km, 4),
            "can_undo": self.editor.can_undo,
            "history_size": self.editor.history_size,
            "committed": to_feature(committed),
            "stroke": shape_feature(self.strokes.shape, {"mode": self.pointer_mode()}),
            "cursor": shape_feature(self.cursor_shape(), {"mode": self.mode.value}),
            "area_km2": round(primitives.area_km2(committed), 3),
            "last_commit": {
                "status": self.last_commit.status.value,
                "reason": self.last_commit.reason
            } if self.last_commit else None,
            "warnings": list(self.warnings),
        }

    def pointer_mode(self) -> str:
        stroke = self.strokes.stroke
        return (stroke.mode if stroke else self.mode).value


class SessionRegistry:
    """Open editing sessions by id, one lock per session"""

    def __init__(self, ttl_seconds: int = None):
        self.ttl_seconds = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._sessions: Dict[str, EditingSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._sessions)

    def add(self, session: EditingSession) -> EditingSession:
        self.purge_expired()
        with self._lock:
            self._sessions[session.id] = session
            self._locks[session.id] = threading.Lock()
        logger.info("Editing session opened",
                    session_id=session.id,
                    territory_id=session.territory_id,
                    profile=session.profile)
        return session

    @contextmanager
    def acquire(self, session_id: str):
        """Hold a session exclusively for the duration of the block"""
        with self._lock:
            session = self._sessions.get(session_id)
            lock = self._locks.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Editing session {session_id} not found")

        with lock:
            session.touch()
            yield session

    def close(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
        if session is not None:
            logger.info("Editing session closed", session_id=session_id)
        return session is not None

    def purge_expired(self) -> int:
        if not self.ttl_seconds:
            return 0

        cutoff = time.monotonic() - self.ttl_seconds
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.last_active < cutoff]
            for sid in expired:
                del self._sessions[sid]
                del self._locks[sid]

        if expired:
            logger.info("Expired editing sessions purged", count=len(expired))
        return len(expired)
