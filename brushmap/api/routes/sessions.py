"""Brush editing session endpoints"""

from flask import current_app, request
from flask_restx import Namespace, Resource, fields
import structlog

from brushmap.api.routes.territories import GEOJSON_CACHE_KEY
from brushmap.geometry.editor import CommitStatus
from brushmap.geometry.normalizer import from_persisted, to_feature
from brushmap.geometry.primitives import Point
from brushmap.geometry.sizing import BOUNDARY_EDITOR, FREEHAND, sizing_profile
from brushmap.services.editing_session import EditingSession
from brushmap.utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)

sessions_ns = Namespace("sessions", description="Brush editing session operations")

# Request models
session_create_model = sessions_ns.model("SessionCreate", {
    "profile": fields.String(description="Brush profile: freehand or boundary_editor"),
    "territory_id": fields.String(description="Territory to load for editing"),
    "brush_value": fields.Float(description="Brush control value (0-100)"),
    "mode": fields.String(description="Brush mode: add or erase", default="add")
})

pointer_model = sessions_ns.model("PointerEvent", {
    "event": fields.String(required=True, description="down, move, up or hover"),
    "lng": fields.Float(required=True, description="Longitude"),
    "lat": fields.Float(required=True, description="Latitude")
})

key_model = sessions_ns.model("KeyEvent", {
    "key": fields.String(required=True, description="Key name, e.g. Enter, Escape, z, [, ]"),
    "ctrl": fields.Boolean(default=False, description="Ctrl or Meta held")
})

brush_model = sessions_ns.model("BrushSettings", {
    "mode": fields.String(description="Brush mode: add or erase"),
    "value": fields.Float(description="Brush control value (0-100)")
})

finish_model = sessions_ns.model("FinishRequest", {
    "save": fields.Boolean(description="Persist into the session's territory")
})


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _point(data: dict) -> Point:
    try:
        return Point.of({"lng": data.get("lng"), "lat": data.get("lat")})
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid coordinates: {e}")


def _number(value, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")


def _finish(session_id: str, save=None) -> dict:
    with current_app.sessions.acquire(session_id) as session:
        boundary = session.finish()
        territory_id = session.territory_id

    if save is None:
        save = territory_id is not None

    if save:
        if not territory_id:
            raise ValidationError("Session has no territory to save into")
        # PersistenceError propagates as 503 and the session stays open for a retry
        current_app.boundary_store.save_boundary(territory_id, boundary)
        current_app.cache.delete(GEOJSON_CACHE_KEY)

    current_app.sessions.close(session_id)
    logger.info("Session finished", session_id=session_id, territory_id=territory_id, saved=bool(save))

    return {
        "session_id": session_id,
        "territory_id": territory_id,
        "saved": bool(save),
        "boundary": to_feature(boundary)
    }


@sessions_ns.route("")
class SessionList(Resource):
    """Open a new editing session"""

    @sessions_ns.doc("create_session")
    @sessions_ns.expect(session_create_model)
    def post(self):
        """Open a drawing session, optionally loading a territory's boundary for editing"""
        data = _json_body()
        territory_id = data.get("territory_id")
        profile = data.get("profile") or (BOUNDARY_EDITOR if territory_id else FREEHAND)

        brush_value = data.get("brush_value")
        if brush_value is not None:
            brush_value = _number(brush_value, "brush_value")

        session = EditingSession(
            sizing_profile(profile),
            territory_id=territory_id,
            brush_value=brush_value,
            mode=data.get("mode", "add"),
            profile=profile
        )

        if territory_id:
            text = current_app.boundary_store.load_boundary_text(territory_id)
            boundary = from_persisted(text)
            if text and boundary is None:
                session.warnings.append("Stored boundary could not be read; starting from an empty boundary")
            session.seed(boundary)

        current_app.sessions.add(session)
        return session.snapshot(), 201


@sessions_ns.route("/<string:session_id>")
class SessionDetail(Resource):
    """Inspect or cancel a session"""

    @sessions_ns.doc("get_session")
    def get(self, session_id):
        """Current committed shape, live stroke and brush state"""
        with current_app.sessions.acquire(session_id) as session:
            return session.snapshot()

    @sessions_ns.doc("cancel_session")
    def delete(self, session_id):
        """Cancel: discard the live stroke, the drawing and its history"""
        with current_app.sessions.acquire(session_id) as session:
            session.cancel()
        current_app.sessions.close(session_id)
        return "", 204


@sessions_ns.route("/<string:session_id>/pointer")
class SessionPointer(Resource):
    """Pointer events"""

    @sessions_ns.doc("pointer_event")
    @sessions_ns.expect(pointer_model)
    def post(self, session_id):
        """Feed one pointer event into the session"""
        data = _json_body()
        event = data.get("event")
        point = _point(data)

        with current_app.sessions.acquire(session_id) as session:
            if event == "down":
                session.pointer_down(point)
            elif event in ("move", "hover"):
                session.pointer_move(point)
            elif event == "up":
                result = session.pointer_up(point)
                if result.status is CommitStatus.REJECTED:
                    logger.warning("Stroke did not apply", session_id=session_id, reason=result.reason)
            else:
                raise ValidationError("event must be one of: down, move, hover, up")
            return session.snapshot()


@sessions_ns.route("/<string:session_id>/keys")
class SessionKeys(Resource):
    """Keyboard shortcuts"""

    @sessions_ns.doc("key_event")
    @sessions_ns.expect(key_model)
    def post(self, session_id):
        """Apply a keyboard shortcut; Enter finishes the session like POST /finish"""
        data = _json_body()
        key = data.get("key")
        if not key or not isinstance(key, str):
            raise ValidationError("key is required")

        with current_app.sessions.acquire(session_id) as session:
            action = session.handle_key(key, ctrl=bool(data.get("ctrl")))
            snapshot = session.snapshot()

        if action == "finish":
            body = _finish(session_id)
            body["action"] = action
            return body

        if action == "cancel":
            current_app.sessions.close(session_id)

        snapshot["action"] = action
        return snapshot


@sessions_ns.route("/<string:session_id>/brush")
class SessionBrush(Resource):
    """Brush mode and size"""

    @sessions_ns.doc("update_brush")
    @sessions_ns.expect(brush_model)
    def put(self, session_id):
        """Change brush mode and/or size"""
        data = _json_body()

        with current_app.sessions.acquire(session_id) as session:
            if data.get("mode") is not None:
                session.set_mode(data["mode"])
            if data.get("value") is not None:
                session.set_brush_value(_number(data["value"], "value"))
            return session.snapshot()


@sessions_ns.route("/<string:session_id>/undo")
class SessionUndo(Resource):
    """Undo"""

    @sessions_ns.doc("undo")
    def post(self, session_id):
        """Restore the shape from before the last stroke"""
        with current_app.sessions.acquire(session_id) as session:
            undone = session.undo()
            snapshot = session.snapshot()
        snapshot["undone"] = undone
        return snapshot


@sessions_ns.route("/<string:session_id>/finish")
class SessionFinish(Resource):
    """Finish and optionally save"""

    @sessions_ns.doc("finish_session")
    @sessions_ns.expect(finish_model)
    def post(self, session_id):
        """Return the finished MultiPolygon; save it into the territory when asked"""
        data = _json_body()
        return _finish(session_id, data.get("save"))
