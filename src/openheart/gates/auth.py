"""Authentication gate for the review-submission view.

The gate asks a session resolver whether the current request carries a
valid login session. Resolvers are pluggable and report one of three
outcomes: authenticated, unauthenticated, or error. The gate itself adds a
loading state that lasts until resolution finishes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Protocol, Sequence, runtime_checkable
from urllib.parse import quote, urlsplit

from openheart.config import LOGIN_PATH, NEW_REVIEW_PATH
from openheart.gates.state import BrowserSession, SessionStoreError
from openheart.web.tokens import get_access_token, mask_token, validate_token

logger = logging.getLogger(__name__)

# Session key holding the logged-in principal
LOGIN_KEY = "authenticatedAs"
DEFAULT_PRINCIPAL = "owner"


class AuthStatus(str, Enum):
    """Outcome of a session resolution."""

    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    ERROR = "error"


class AuthGateState(str, Enum):
    """Rendering state of the auth gate."""

    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    ERROR = "error"


class SessionResolutionError(Exception):
    """A resolver could not determine the session status."""

    pass


@dataclass
class AuthResolution:
    """Result returned by a session resolver."""

    status: AuthStatus
    principal: str | None = None
    resolver: str | None = None
    reason: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED

    @classmethod
    def authenticated(cls, principal: str, resolver: str) -> "AuthResolution":
        return cls(AuthStatus.AUTHENTICATED, principal=principal, resolver=resolver)

    @classmethod
    def unauthenticated(
        cls, resolver: str, reason: str | None = None
    ) -> "AuthResolution":
        return cls(AuthStatus.UNAUTHENTICATED, resolver=resolver, reason=reason)

    @classmethod
    def error(cls, resolver: str, reason: str) -> "AuthResolution":
        return cls(AuthStatus.ERROR, resolver=resolver, reason=reason)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "principal": self.principal,
            "resolver": self.resolver,
            "reason": self.reason,
        }


@dataclass
class AuthRequest:
    """What a resolver may look at."""

    session: BrowserSession | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


@runtime_checkable
class SessionResolver(Protocol):
    """Capability check answering "does this request have a valid session"."""

    @property
    def name(self) -> str:
        """Identifier reported in resolutions and logs."""
        ...

    async def resolve(self, request: AuthRequest) -> AuthResolution:
        """Resolve the request's auth status."""
        ...


class AnonymousResolver:
    """Never authenticates. Used when login is disabled."""

    name = "anonymous"

    async def resolve(self, request: AuthRequest) -> AuthResolution:
        return AuthResolution.unauthenticated(self.name, reason="login disabled")


class SessionStoreResolver:
    """Authenticated when the browser session carries a login marker."""

    name = "session"

    def __init__(self, key: str = LOGIN_KEY):
        self._key = key

    async def resolve(self, request: AuthRequest) -> AuthResolution:
        if request.session is None:
            return AuthResolution.unauthenticated(self.name, reason="no session")
        try:
            principal = request.session.get(self._key)
        except SessionStoreError as e:
            return AuthResolution.error(self.name, str(e))
        if not principal:
            return AuthResolution.unauthenticated(self.name, reason="not logged in")
        return AuthResolution.authenticated(principal, self.name)


class BearerTokenResolver:
    """Authenticated when an Authorization header carries the access token."""

    name = "bearer"

    def __init__(self, token_provider: Callable[[], str] = get_access_token):
        self._token_provider = token_provider

    async def resolve(self, request: AuthRequest) -> AuthResolution:
        auth_header = request.headers.get("authorization")
        if not auth_header:
            return AuthResolution.unauthenticated(self.name, reason="missing header")
        if not auth_header.startswith("Bearer "):
            return AuthResolution.unauthenticated(
                self.name, reason="invalid header format"
            )

        provided = auth_header[7:]
        try:
            expected = self._token_provider()
        except Exception as e:
            logger.error(f"Failed to load access token: {e}")
            return AuthResolution.error(self.name, "token configuration error")

        if not validate_token(provided, expected):
            logger.warning(f"Invalid bearer token: {mask_token(provided)}")
            return AuthResolution.unauthenticated(self.name, reason="invalid token")
        return AuthResolution.authenticated(DEFAULT_PRINCIPAL, self.name)


class ChainedResolver:
    """Try resolvers in order.

    The first authenticated result wins. Otherwise an error from any
    resolver makes the whole resolution an error, and plain
    unauthenticated is returned last.
    """

    name = "chain"

    def __init__(self, resolvers: Sequence[SessionResolver]):
        if not resolvers:
            raise ValueError("ChainedResolver needs at least one resolver")
        self._resolvers = list(resolvers)

    @property
    def resolvers(self) -> list[SessionResolver]:
        return list(self._resolvers)

    async def resolve(self, request: AuthRequest) -> AuthResolution:
        first_error: AuthResolution | None = None
        last: AuthResolution | None = None
        for resolver in self._resolvers:
            result = await _resolve_safely(resolver, request)
            if result.is_authenticated:
                return result
            if result.status == AuthStatus.ERROR and first_error is None:
                first_error = result
            last = result
        return first_error or last


async def _resolve_safely(
    resolver: SessionResolver, request: AuthRequest
) -> AuthResolution:
    """Run a resolver, turning unexpected exceptions into an error result."""
    try:
        return await resolver.resolve(request)
    except SessionResolutionError as e:
        return AuthResolution.error(resolver.name, str(e))
    except Exception as e:
        logger.exception(f"Session resolver '{resolver.name}' failed")
        return AuthResolution.error(resolver.name, f"{type(e).__name__}: {e}")


class AuthGate:
    """Decides whether the submission form may be rendered.

    Usage:
        gate = AuthGate(resolver)
        resolution = await gate.resolve(AuthRequest(session=session))
        if gate.state == AuthGateState.AUTHENTICATED:
            ...
    """

    def __init__(
        self,
        resolver: SessionResolver,
        timeout: float | None = None,
        redirect_target: str = NEW_REVIEW_PATH,
    ):
        self._resolver = resolver
        self._timeout = timeout
        self._redirect_target = redirect_target
        self._resolution: AuthResolution | None = None

    @property
    def state(self) -> AuthGateState:
        if self._resolution is None:
            return AuthGateState.LOADING
        return AuthGateState(self._resolution.status.value)

    @property
    def resolution(self) -> AuthResolution | None:
        return self._resolution

    @property
    def allows_form(self) -> bool:
        return self.state == AuthGateState.AUTHENTICATED

    @property
    def login_url(self) -> str:
        return login_url(self._redirect_target)

    async def resolve(self, request: AuthRequest) -> AuthResolution:
        """Resolve once; later calls return the cached resolution."""
        if self._resolution is not None:
            return self._resolution

        try:
            result = await asyncio.wait_for(
                _resolve_safely(self._resolver, request), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Session resolution timed out after {self._timeout}s "
                f"({self._resolver.name})"
            )
            result = AuthResolution.error(self._resolver.name, "resolution timed out")

        if result.status == AuthStatus.ERROR:
            logger.warning(f"Session resolution error: {result.reason}")
        self._resolution = result
        return result


def login_url(redirect_target: str = NEW_REVIEW_PATH) -> str:
    """Login URL that returns the visitor to ``redirect_target``."""
    return f"{LOGIN_PATH}?redirect={quote(redirect_target, safe='/')}"


def safe_redirect_target(target: str | None, default: str = "/") -> str:
    """Accept only local absolute paths as post-login redirects."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return default
    if "\\" in target:
        return default
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return default
    return target


def record_login(session: BrowserSession, principal: str = DEFAULT_PRINCIPAL) -> None:
    """Mark the session as logged in under a freshly issued session id.

    Values stored before login (the disclaimer flag) move to the new id, and
    the id the visitor arrived with stops working.
    """
    session.regenerate()
    session.set(LOGIN_KEY, principal)
    logger.info(f"Session logged in as {principal}")


def record_logout(session: BrowserSession) -> None:
    """Remove the login marker. Other session state is kept."""
    session.delete(LOGIN_KEY)
