"""
Route Flow Editor Web Application

A Flask JSON API that lets a canvas client edit the flows of HTTP routes.

Features:
- Route, settings and session endpoints
- Canvas change lists, connections and palette drops
- Save / back navigation with transient recovery of unsaved work

To run:
    python3 app.py

Configuration (environment):
    FLOW_EDITOR_SNAPSHOT_STORE  "memory" (default) or "filesystem"
    FLOW_EDITOR_SNAPSHOT_PATH   directory for the filesystem store
    FLOW_EDITOR_PORT            port to listen on (default: 5001)
"""

import asyncio
import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from route_flow_editor import EntityRegistry, Route, RouteFlowEditor, Settings
from route_flow_editor.exceptions import RouteNotFoundError

# Configure logging with detailed format
logging.basicConfig(level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def _run(coro):
    """Run a coroutine on a fresh event loop."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class FlowEditorManager:
    """Holds the editor shared by all requests."""

    def __init__(self):
        self.editor = None
        self.reset()

    def reset(self) -> None:
        """Start over with an empty registry and the configured snapshot store."""
        store = os.environ.get("FLOW_EDITOR_SNAPSHOT_STORE", "memory")
        path = os.environ.get("FLOW_EDITOR_SNAPSHOT_PATH")
        self.editor = RouteFlowEditor(
            registry=EntityRegistry(),
            snapshot_store=store,
            snapshot_path=path if store == "filesystem" else None,
        )
        logger.info(f"Flow editor ready with {store} snapshot store")

    @property
    def registry(self) -> EntityRegistry:
        return self.editor.registry

    @property
    def session(self):
        session = self.editor.active_session
        if session is None or not session.is_open:
            return None
        return session


# Initialize manager
manager = FlowEditorManager()


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    return data


def _no_session():
    return jsonify({"error": "No route is being edited"}), 409


def _session_response(**extra):
    payload = {"session": manager.session.to_dict()} if manager.session else {}
    payload.update(extra)
    return jsonify(payload)


# ==================== Routes ====================


@app.route("/api/routes", methods=["GET"])
def list_routes():
    return jsonify({"routes": [r.to_dict() for r in manager.registry.routes]})


@app.route("/api/routes", methods=["POST"])
def create_route():
    """Register a new route."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "JSON body required"}), 400
    try:
        route = Route.model_validate(data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    manager.registry.add_route(route)
    return jsonify({"route": route.to_dict()}), 201


@app.route("/api/routes/<route_id>", methods=["PUT"])
def replace_route(route_id: str):
    """Replace a route with a complete object."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "JSON body required"}), 400
    try:
        manager.registry.get_route(route_id)
        route = Route.model_validate({**data, "id": route_id})
    except RouteNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    manager.registry.update_route(route)
    return jsonify({"route": route.to_dict()})


@app.route("/api/routes/<route_id>", methods=["DELETE"])
def delete_route(route_id: str):
    routes = manager.registry.delete_route(route_id)
    return jsonify({"routes": [r.to_dict() for r in routes]})


@app.route("/api/routes/<route_id>/open", methods=["POST"])
def open_route(route_id: str):
    """Open a route's flow for editing."""
    try:
        _run(manager.editor.open_route(route_id))
    except RouteNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    logger.info(f"Opened route '{route_id}' for editing")
    return _session_response()


# ==================== Session ====================


@app.route("/api/session", methods=["GET"])
def get_session():
    if manager.session is None:
        return _no_session()
    return _session_response()


@app.route("/api/session/nodes", methods=["POST"])
def drop_node():
    """Add a node dropped from the component palette."""
    if manager.session is None:
        return _no_session()
    data = _json_body()
    if data is None or not data.get("type"):
        return jsonify({"error": "Node type required"}), 400
    position = data.get("position") or {"x": 0, "y": 0}
    node = _run(manager.session.drop_node(data["type"], position))
    if node is None:
        return jsonify({"error": manager.session.operations.last.error}), 400
    return _session_response(node=node.to_dict())


@app.route("/api/session/nodes/<node_id>", methods=["PATCH"])
def update_node(node_id: str):
    """Merge form values into a node's data."""
    if manager.session is None:
        return _no_session()
    data = _json_body()
    if data is None:
        return jsonify({"error": "JSON body required"}), 400
    session = manager.session
    node = _run(session.update_node_data(node_id, data))
    if node is None and not session.operations.last.success:
        return jsonify({"error": session.operations.last.error}), 400
    return _session_response()


@app.route("/api/session/nodes/<node_id>", methods=["DELETE"])
def remove_node(node_id: str):
    if manager.session is None:
        return _no_session()
    removed = _run(manager.session.remove_node(node_id))
    return _session_response(removed=removed)


@app.route("/api/session/connect", methods=["POST"])
def connect():
    """Connect two nodes."""
    if manager.session is None:
        return _no_session()
    data = _json_body()
    if data is None or not data.get("source") or not data.get("target"):
        return jsonify({"error": "source and target required"}), 400
    edge = _run(
        manager.session.connect(
            data["source"],
            data["target"],
            source_handle=data.get("sourceHandle"),
            target_handle=data.get("targetHandle"),
        )
    )
    if edge is None:
        return jsonify({"error": manager.session.operations.last.error}), 400
    return _session_response(edge=edge.to_dict())


@app.route("/api/session/changes", methods=["POST"])
def apply_changes():
    """Apply canvas node and/or edge change lists; a rejected list leaves both unapplied."""
    if manager.session is None:
        return _no_session()
    data = _json_body()
    if data is None:
        return jsonify({"error": "JSON body required"}), 400
    session = manager.session
    mutated = _run(session.apply_changes(data.get("nodes") or [], data.get("edges") or []))
    if not session.operations.last.success:
        return jsonify({"error": session.operations.last.error}), 400
    return _session_response(mutated=mutated)


@app.route("/api/session/select", methods=["POST"])
def select_node():
    if manager.session is None:
        return _no_session()
    data = _json_body() or {}
    manager.session.select(data.get("nodeId"))
    return _session_response()


@app.route("/api/session/save", methods=["POST"])
def save():
    """Commit the flow to its route."""
    session = manager.session
    if session is None:
        return _no_session()
    saved = _run(session.save())
    return jsonify(
        {"saved": saved, "route": session.route.to_dict(), "session": session.to_dict()}
    )


@app.route("/api/session/back", methods=["POST"])
def back():
    """Leave the editor without saving."""
    session = manager.session
    if session is None:
        return _no_session()
    _run(session.back())
    return jsonify({"session": session.to_dict()})


# ==================== Settings ====================


@app.route("/api/settings", methods=["GET"])
def get_settings():
    return jsonify({"settings": manager.registry.settings.to_dict()})


@app.route("/api/settings", methods=["PUT"])
def update_settings():
    data = _json_body()
    if data is None:
        return jsonify({"error": "JSON body required"}), 400
    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    manager.registry.update_settings(settings)
    return jsonify({"settings": settings.to_dict()})


if __name__ == "__main__":
    port = int(os.environ.get("FLOW_EDITOR_PORT", "5001"))
    print("\n" + "=" * 80)
    print("Route Flow Editor API")
    print("=" * 80)
    print(f"\nListening on http://localhost:{port}")
    print("\n" + "=" * 80 + "\n")

    app.run(debug=True, port=port)
