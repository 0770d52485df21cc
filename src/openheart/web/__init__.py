"""Web layer: FastAPI application, HTML views, middleware and CLI.

Usage:
    # Start the site on 127.0.0.1:47300
    openheart serve

    # Persist sessions across restarts
    openheart serve --session-db ~/.openheart/sessions.db

    # Show the access token used to log in
    openheart auth show
"""
