"""API Routes Registration"""

from flask_restx import Api

def register_routes(api: Api) -> None:
    """Register all API routes"""

    # Import namespaces
    from brushmap.api.routes.sessions import sessions_ns
    from brushmap.api.routes.territories import territories_ns

    # Register namespaces
    api.add_namespace(sessions_ns, path="/sessions")
    api.add_namespace(territories_ns, path="/territories")
