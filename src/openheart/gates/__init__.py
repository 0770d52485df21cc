"""Gates module: session-scoped access decisions.

Key concepts:
- DisclaimerGate: content warning acknowledged once per browsing session
- AuthGate: login check in front of the review-submission form
- SessionStore: key/value storage scoped to a browsing session
"""

from openheart.gates.auth import (
    AnonymousResolver,
    AuthGate,
    AuthGateState,
    AuthRequest,
    AuthResolution,
    AuthStatus,
    BearerTokenResolver,
    ChainedResolver,
    SessionResolutionError,
    SessionResolver,
    SessionStoreResolver,
)
from openheart.gates.disclaimer import Disclaimer, DisclaimerGate, GateOption
from openheart.gates.state import (
    BrowserSession,
    MemorySessionStore,
    SessionPurger,
    SessionStore,
    SessionStoreError,
    SqliteSessionStore,
    create_session_store,
)

__all__ = [
    # Auth
    "AnonymousResolver",
    "AuthGate",
    "AuthGateState",
    "AuthRequest",
    "AuthResolution",
    "AuthStatus",
    "BearerTokenResolver",
    "ChainedResolver",
    "SessionResolutionError",
    "SessionResolver",
    "SessionStoreResolver",
    # Disclaimer
    "Disclaimer",
    "DisclaimerGate",
    "GateOption",
    # State
    "BrowserSession",
    "MemorySessionStore",
    "SessionPurger",
    "SessionStore",
    "SessionStoreError",
    "SqliteSessionStore",
    "create_session_store",
]
