"""Tests for the authentication gate and session resolvers."""

import asyncio
from unittest.mock import MagicMock

import pytest

from openheart.gates.auth import (
    LOGIN_KEY,
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
    login_url,
    record_login,
    record_logout,
    safe_redirect_target,
)
from openheart.gates.state import BrowserSession, MemorySessionStore, SessionStoreError
from openheart.web.tokens import generate_access_token

TOKEN = generate_access_token()


class FixedResolver:
    """Resolver returning a canned status."""

    def __init__(self, status: AuthStatus, name: str = "fixed"):
        self.status = status
        self.name = name
        self.calls = 0

    async def resolve(self, request):
        self.calls += 1
        if self.status == AuthStatus.AUTHENTICATED:
            return AuthResolution.authenticated("tester", self.name)
        if self.status == AuthStatus.ERROR:
            return AuthResolution.error(self.name, "boom")
        return AuthResolution.unauthenticated(self.name)


class RaisingResolver:
    name = "raising"

    def __init__(self, exc: Exception):
        self.exc = exc

    async def resolve(self, request):
        raise self.exc


class SlowResolver:
    name = "slow"

    async def resolve(self, request):
        await asyncio.sleep(5)
        return AuthResolution.authenticated("late", self.name)


@pytest.fixture
def session():
    return BrowserSession(session_id="s1", store=MemorySessionStore())


class TestResolvers:
    """Tests for individual session resolvers."""

    def test_resolvers_satisfy_protocol(self):
        for resolver in (
            AnonymousResolver(),
            SessionStoreResolver(),
            BearerTokenResolver(lambda: TOKEN),
            ChainedResolver([AnonymousResolver()]),
        ):
            assert isinstance(resolver, SessionResolver)

    @pytest.mark.asyncio
    async def test_anonymous_never_authenticates(self, session):
        record_login(session)
        result = await AnonymousResolver().resolve(AuthRequest(session=session))
        assert result.status == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_session_resolver_without_login(self, session):
        result = await SessionStoreResolver().resolve(AuthRequest(session=session))
        assert result.status == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_session_resolver_after_login(self, session):
        record_login(session, "alice")
        result = await SessionStoreResolver().resolve(AuthRequest(session=session))
        assert result.is_authenticated
        assert result.principal == "alice"

    @pytest.mark.asyncio
    async def test_session_resolver_after_logout(self, session):
        record_login(session)
        record_logout(session)
        result = await SessionStoreResolver().resolve(AuthRequest(session=session))
        assert result.status == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_session_resolver_without_session(self):
        result = await SessionStoreResolver().resolve(AuthRequest())
        assert result.status == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_session_resolver_store_failure_is_error(self):
        """Store failures are reported as error, not unauthenticated."""
        broken = MagicMock()
        broken.get.side_effect = SessionStoreError("disk gone")
        session = BrowserSession(session_id="s1", store=broken)
        result = await SessionStoreResolver().resolve(AuthRequest(session=session))
        assert result.status == AuthStatus.ERROR
        assert "disk gone" in result.reason

    @pytest.mark.asyncio
    async def test_bearer_valid_token(self):
        resolver = BearerTokenResolver(lambda: TOKEN)
        result = await resolver.resolve(
            AuthRequest(headers={"authorization": f"Bearer {TOKEN}"})
        )
        assert result.is_authenticated

    @pytest.mark.asyncio
    async def test_bearer_missing_header(self):
        result = await BearerTokenResolver(lambda: TOKEN).resolve(AuthRequest())
        assert result.status == AuthStatus.UNAUTHENTICATED
        assert result.reason == "missing header"

    @pytest.mark.asyncio
    async def test_bearer_wrong_scheme(self):
        result = await BearerTokenResolver(lambda: TOKEN).resolve(
            AuthRequest(headers={"authorization": f"Basic {TOKEN}"})
        )
        assert result.status == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_bearer_invalid_token(self):
        result = await BearerTokenResolver(lambda: TOKEN).resolve(
            AuthRequest(headers={"authorization": "Bearer oh_wrong"})
        )
        assert result.status == AuthStatus.UNAUTHENTICATED
        assert result.reason == "invalid token"

    @pytest.mark.asyncio
    async def test_bearer_token_provider_failure_is_error(self):
        def broken_provider():
            raise RuntimeError("keychain locked")

        result = await BearerTokenResolver(broken_provider).resolve(
            AuthRequest(headers={"authorization": f"Bearer {TOKEN}"})
        )
        assert result.status == AuthStatus.ERROR


class TestChainedResolver:
    """Tests for resolver composition."""

    def test_requires_resolvers(self):
        with pytest.raises(ValueError):
            ChainedResolver([])

    @pytest.mark.asyncio
    async def test_first_authenticated_wins(self):
        later = FixedResolver(AuthStatus.AUTHENTICATED, "later")
        chain = ChainedResolver(
            [FixedResolver(AuthStatus.AUTHENTICATED, "first"), later]
        )
        result = await chain.resolve(AuthRequest())
        assert result.resolver == "first"
        assert later.calls == 0

    @pytest.mark.asyncio
    async def test_authenticated_beats_error(self):
        chain = ChainedResolver(
            [
                FixedResolver(AuthStatus.ERROR, "broken"),
                FixedResolver(AuthStatus.AUTHENTICATED, "ok"),
            ]
        )
        result = await chain.resolve(AuthRequest())
        assert result.is_authenticated

    @pytest.mark.asyncio
    async def test_error_beats_unauthenticated(self):
        chain = ChainedResolver(
            [
                FixedResolver(AuthStatus.UNAUTHENTICATED, "anon"),
                FixedResolver(AuthStatus.ERROR, "broken"),
            ]
        )
        result = await chain.resolve(AuthRequest())
        assert result.status == AuthStatus.ERROR
        assert result.resolver == "broken"

    @pytest.mark.asyncio
    async def test_all_unauthenticated(self):
        chain = ChainedResolver(
            [
                FixedResolver(AuthStatus.UNAUTHENTICATED, "a"),
                FixedResolver(AuthStatus.UNAUTHENTICATED, "b"),
            ]
        )
        result = await chain.resolve(AuthRequest())
        assert result.status == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_raising_member_counts_as_error(self):
        chain = ChainedResolver(
            [RaisingResolver(RuntimeError("oops")), AnonymousResolver()]
        )
        result = await chain.resolve(AuthRequest())
        assert result.status == AuthStatus.ERROR


class TestAuthGate:
    """Tests for the gate state machine."""

    def test_starts_loading(self):
        gate = AuthGate(AnonymousResolver())
        assert gate.state == AuthGateState.LOADING
        assert gate.resolution is None
        assert not gate.allows_form

    @pytest.mark.asyncio
    async def test_unauthenticated_blocks_form(self):
        gate = AuthGate(AnonymousResolver())
        await gate.resolve(AuthRequest())
        assert gate.state == AuthGateState.UNAUTHENTICATED
        assert not gate.allows_form
        assert gate.login_url == "/login?redirect=/reviews/new"

    @pytest.mark.asyncio
    async def test_authenticated_allows_form(self):
        gate = AuthGate(FixedResolver(AuthStatus.AUTHENTICATED))
        await gate.resolve(AuthRequest())
        assert gate.state == AuthGateState.AUTHENTICATED
        assert gate.allows_form

    @pytest.mark.asyncio
    async def test_resolver_exception_becomes_error(self):
        gate = AuthGate(RaisingResolver(RuntimeError("network down")))
        result = await gate.resolve(AuthRequest())
        assert gate.state == AuthGateState.ERROR
        assert "network down" in result.reason
        assert not gate.allows_form

    @pytest.mark.asyncio
    async def test_resolution_error_exception(self):
        gate = AuthGate(RaisingResolver(SessionResolutionError("idp unreachable")))
        result = await gate.resolve(AuthRequest())
        assert result.status == AuthStatus.ERROR
        assert result.reason == "idp unreachable"

    @pytest.mark.asyncio
    async def test_timeout_becomes_error(self):
        gate = AuthGate(SlowResolver(), timeout=0.01)
        result = await gate.resolve(AuthRequest())
        assert gate.state == AuthGateState.ERROR
        assert result.reason == "resolution timed out"

    @pytest.mark.asyncio
    async def test_resolves_once(self):
        resolver = FixedResolver(AuthStatus.UNAUTHENTICATED)
        gate = AuthGate(resolver)
        await gate.resolve(AuthRequest())
        await gate.resolve(AuthRequest())
        assert resolver.calls == 1

    def test_custom_redirect_target(self):
        gate = AuthGate(AnonymousResolver(), redirect_target="/reviews")
        assert gate.login_url == "/login?redirect=/reviews"


class TestLoginHelpers:
    """Tests for login URL and redirect handling."""

    def test_login_url_default(self):
        assert login_url() == "/login?redirect=/reviews/new"

    def test_login_url_quotes_query(self):
        assert login_url("/reviews?x=1") == "/login?redirect=/reviews%3Fx%3D1"

    @pytest.mark.parametrize(
        "target",
        ["/reviews/new", "/reviews", "/", "/reviews/1"],
    )
    def test_local_targets_accepted(self, target):
        assert safe_redirect_target(target) == target

    @pytest.mark.parametrize(
        "target",
        [
            None,
            "",
            "https://evil.example/",
            "//evil.example/path",
            "reviews/new",
            "/\\evil.example",
            "javascript:alert(1)",
        ],
    )
    def test_foreign_targets_rejected(self, target):
        assert safe_redirect_target(target) == "/"

    def test_record_login_sets_marker(self, session):
        record_login(session, "bob")
        assert session.get(LOGIN_KEY) == "bob"

    def test_record_login_reissues_session_id(self, session):
        store = session.store
        session.set("disclaimerAccepted", "true")
        record_login(session)
        assert session.session_id != "s1"
        assert session.is_new
        assert store.get("s1", LOGIN_KEY) is None
        assert store.get("s1", "disclaimerAccepted") is None
        assert session.get("disclaimerAccepted") == "true"
