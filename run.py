#!/usr/bin/env python3
"""Run brushmap Flask application"""

from brushmap.app import create_app
from brushmap.config.settings import settings
from brushmap.utils.exceptions import ConfigurationError

if __name__ == "__main__":
    # Validate settings
    try:
        settings.validate()
        print(f"✓ Settings validated")
        print(f"  - Containment: {settings.CONTAINMENT_BACKEND}")
        print(f"  - Circle steps: {settings.CIRCLE_STEPS}")
        print(f"  - Cache: {'Enabled' if settings.USE_CACHE else 'Disabled'}")
    except ConfigurationError as e:
        print(f"✗ Settings validation failed: {e}")
        exit(1)

    app = create_app()

    # Run app
    print(f"\n🚀 Starting brushmap API on http://{settings.API_HOST}:{settings.API_PORT}")
    print(f"📚 API Docs: http://{settings.API_HOST}:{settings.API_PORT}/docs\n")

    app.run(
        host=settings.API_HOST,
        port=settings.API_PORT,
        debug=settings.DEBUG
    )
