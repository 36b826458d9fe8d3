"""Tests for the handshake state machine in handshake.auth.client."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import RecordingHandler
from handshake.auth.authenticator import (
    AuthenticatorProfileCreator,
    SimpleTestUsernamePasswordAuthenticator,
)
from handshake.auth.client import (
    NEEDS_CLIENT_REDIRECTION_PARAMETER,
    AuthenticationClient,
    ClientBuilder,
    write_outcome,
)
from handshake.context import MockWebContext
from handshake.exceptions import InvalidUsageError, RequiresHttpAction
from handshake.models import (
    HttpAction,
    HttpActionKind,
    RedirectAction,
    RedirectType,
    UserProfile,
    UsernamePasswordCredentials,
)

GUARD_KEY = "StubClient$attemptedAuthentication"


def _client(handler, **kwargs) -> AuthenticationClient:
    builder = ClientBuilder(handler).name(kwargs.pop("name", "StubClient"))
    builder.callback_url(kwargs.pop("callback_url", "/callback"))
    if kwargs.pop("contextual", False):
        builder.enable_contextual_redirects()
    for generator in kwargs.pop("generators", ()):
        builder.add_authorization_generator(generator)
    if "authenticator" in kwargs:
        builder.authenticator(kwargs.pop("authenticator"))
    if "profile_creator" in kwargs:
        builder.profile_creator(kwargs.pop("profile_creator"))
    return builder.build()


# ---------------------------------------------------------------------------
# Redirect decision
# ---------------------------------------------------------------------------


class TestResolveRedirect:
    @pytest.mark.parametrize("direct", [True, False])
    @pytest.mark.parametrize("requires_authentication", [True, False])
    def test_ajax_request_is_unauthorized(self, context, direct, requires_authentication):
        handler = RecordingHandler(direct=direct)
        client = _client(handler)

        outcome = client.resolve_redirect(context, requires_authentication, True)

        assert isinstance(outcome, HttpAction)
        assert outcome.kind is HttpActionKind.UNAUTHORIZED
        assert outcome.status_code == 401
        assert handler.calls == []

    def test_ajax_does_not_consume_loop_guard(self, context, handler):
        context.session[GUARD_KEY] = "true"
        client = _client(handler)

        client.resolve_redirect(context, True, True)

        assert context.session[GUARD_KEY] == "true"

    def test_indirect_unprotected_redirects_to_callback(self, context, handler):
        client = _client(handler)

        outcome = client.resolve_redirect(context, False, False)

        assert isinstance(outcome, RedirectAction)
        assert outcome.type is RedirectType.REDIRECT
        assert outcome.location == "/callback?needs_client_redirection=true"
        assert handler.calls == []

    def test_intermediate_url_keeps_existing_query(self, context, handler):
        client = _client(handler, callback_url="/callback?client_name=StubClient")

        outcome = client.resolve_redirect(context, False, False)

        assert outcome.location == (
            "/callback?client_name=StubClient&needs_client_redirection=true"
        )

    def test_intermediate_url_is_contextual_when_enabled(self, handler):
        context = MockWebContext(scheme="https", server_name="example.com", server_port=443)
        client = _client(handler, contextual=True)

        outcome = client.resolve_redirect(context, False, False)

        assert outcome.location == "https://example.com/callback?needs_client_redirection=true"

    def test_direct_handler_delegates(self, context, direct_handler):
        client = _client(direct_handler)

        outcome = client.resolve_redirect(context, False, False)

        assert outcome == direct_handler.outcome
        assert direct_handler.calls == ["compute_redirect_outcome"]

    def test_protected_target_delegates(self, context, handler):
        client = _client(handler)

        outcome = client.resolve_redirect(context, True, False)

        assert outcome == handler.outcome
        assert handler.calls == ["compute_redirect_outcome"]

    def test_success_outcome_passes_through(self, context):
        handler = RecordingHandler(direct=True, outcome=RedirectAction.success("<form/>"))
        client = _client(handler)

        outcome = client.resolve_redirect(context, False, False)

        assert outcome.type is RedirectType.SUCCESS
        assert outcome.content == "<form/>"

    def test_attempted_and_protected_is_forbidden(self, context, handler):
        context.session[GUARD_KEY] = "true"
        client = _client(handler)

        outcome = client.resolve_redirect(context, True, False)

        assert isinstance(outcome, HttpAction)
        assert outcome.kind is HttpActionKind.FORBIDDEN
        assert outcome.status_code == 403
        assert GUARD_KEY not in context.session
        assert handler.calls == []

    def test_forbidden_only_once(self, context, handler):
        context.session[GUARD_KEY] = "true"
        client = _client(handler)

        first = client.resolve_redirect(context, True, False)
        second = client.resolve_redirect(context, True, False)

        assert isinstance(first, HttpAction)
        assert second == handler.outcome

    def test_attempted_and_unprotected_clears_and_continues(self, context, handler):
        context.session[GUARD_KEY] = "true"
        client = _client(handler)

        outcome = client.resolve_redirect(context, False, False)

        assert outcome.location == "/callback?needs_client_redirection=true"
        assert GUARD_KEY not in context.session

    def test_other_client_marker_is_ignored(self, context, handler):
        context.session["OtherClient$attemptedAuthentication"] = "true"
        client = _client(handler)

        outcome = client.resolve_redirect(context, True, False)

        assert outcome == handler.outcome
        assert context.session["OtherClient$attemptedAuthentication"] == "true"


class TestGetRedirectAction:
    def test_returns_redirect(self, context, handler):
        client = _client(handler)
        action = client.get_redirect_action(context, True, False)
        assert action == handler.outcome

    def test_raises_for_ajax(self, context, handler):
        client = _client(handler)
        with pytest.raises(RequiresHttpAction) as exc_info:
            client.get_redirect_action(context, False, True)
        assert exc_info.value.status_code == 401
        assert exc_info.value.action.kind is HttpActionKind.UNAUTHORIZED

    def test_raises_for_forbidden(self, context, handler):
        context.session[GUARD_KEY] = "true"
        client = _client(handler)
        with pytest.raises(RequiresHttpAction) as exc_info:
            client.get_redirect_action(context, True, False)
        assert exc_info.value.status_code == 403


class TestRedirect:
    def test_writes_location_and_302(self, context, handler):
        client = _client(handler)

        client.redirect(context, True, False)

        assert context.response_status == 302
        assert context.response_headers["Location"] == "https://idp.example.com/authorize"

    def test_writes_success_content(self, context):
        handler = RecordingHandler(direct=True, outcome=RedirectAction.success("<html/>"))
        client = _client(handler)

        client.redirect(context, False, False)

        assert context.response_status == 200
        assert context.response_content == "<html/>"

    def test_writes_unauthorized_for_ajax(self, context, handler):
        client = _client(handler)

        outcome = client.redirect(context, False, True)

        assert outcome.status_code == 401
        assert context.response_status == 401
        assert "Location" not in context.response_headers


class TestWriteOutcome:
    def test_http_action_headers(self, context):
        action = HttpAction.unauthorized("no", {"WWW-Authenticate": 'Basic realm="x"'})
        write_outcome(context, action)
        assert context.response_status == 401
        assert context.response_headers["WWW-Authenticate"] == 'Basic realm="x"'

    def test_http_redirect_sets_location(self, context):
        write_outcome(context, HttpAction.redirect("go", "/login"))
        assert context.response_status == 302
        assert context.response_headers["Location"] == "/login"

    def test_http_ok_writes_content(self, context):
        write_outcome(context, HttpAction.ok("render", "<p>hi</p>"))
        assert context.response_status == 200
        assert context.response_content == "<p>hi</p>"


class TestGetRedirectionUrl:
    def test_indirect_returns_intermediate_url(self, context, handler):
        client = _client(handler)
        assert client.get_redirection_url(context) == "/callback?needs_client_redirection=true"

    def test_direct_returns_provider_url(self, context, direct_handler):
        client = _client(direct_handler)
        assert client.get_redirection_url(context) == "https://idp.example.com/authorize"

    def test_success_outcome_has_no_url(self, context):
        handler = RecordingHandler(direct=True, outcome=RedirectAction.success("<form/>"))
        client = _client(handler)
        assert client.get_redirection_url(context) is None


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestGetCredentials:
    def test_continuation_redirects_without_extracting(self, handler):
        context = MockWebContext(parameters={NEEDS_CLIENT_REDIRECTION_PARAMETER: "true"})
        client = _client(handler)

        with pytest.raises(RequiresHttpAction) as exc_info:
            client.get_credentials(context)

        action = exc_info.value.action
        assert action.kind is HttpActionKind.REDIRECT
        assert action.location == "https://idp.example.com/authorize"
        assert handler.calls == ["compute_redirect_outcome"]

    def test_continuation_renders_success_content(self):
        handler = RecordingHandler(outcome=RedirectAction.success("<form/>"))
        context = MockWebContext(parameters={NEEDS_CLIENT_REDIRECTION_PARAMETER: "true"})
        client = _client(handler)

        with pytest.raises(RequiresHttpAction) as exc_info:
            client.get_credentials(context)

        action = exc_info.value.action
        assert action.kind is HttpActionKind.OK
        assert action.status_code == 200
        assert action.content == "<form/>"
        assert "extract_credentials" not in handler.calls

    def test_blank_continuation_parameter_is_ignored(self, handler):
        context = MockWebContext(parameters={NEEDS_CLIENT_REDIRECTION_PARAMETER: "  "})
        client = _client(handler)

        assert client.get_credentials(context) is None
        assert handler.calls == ["extract_credentials"]

    def test_no_credentials_marks_session(self, context, handler):
        client = _client(handler)

        assert client.get_credentials(context) is None
        assert context.session[GUARD_KEY] == "true"

    def test_credentials_clear_marker(self, context):
        credentials = UsernamePasswordCredentials(username="jdoe", password="jdoe")
        handler = RecordingHandler(credentials=credentials)
        context.session[GUARD_KEY] = "true"
        client = _client(handler)

        result = client.get_credentials(context)

        assert result is credentials
        assert result.client_name == "StubClient"
        assert GUARD_KEY not in context.session

    def test_rejected_credentials_mark_session(self, context):
        handler = RecordingHandler(
            credentials=UsernamePasswordCredentials(username="jdoe", password="wrong")
        )
        client = _client(handler, authenticator=SimpleTestUsernamePasswordAuthenticator())

        assert client.get_credentials(context) is None
        assert context.session[GUARD_KEY] == "true"

    def test_accepted_credentials_carry_profile(self, context):
        handler = RecordingHandler(
            credentials=UsernamePasswordCredentials(username="jdoe", password="jdoe")
        )
        client = _client(handler, authenticator=SimpleTestUsernamePasswordAuthenticator())

        credentials = client.get_credentials(context)

        assert credentials is not None
        assert credentials.user_profile.id == "jdoe"

    def test_full_indirect_round_trip(self, context):
        credentials = UsernamePasswordCredentials(username="jdoe", password="jdoe")
        handler = RecordingHandler()
        client = _client(handler)

        # Anonymous request on a public page, then the callback continuation.
        first = client.resolve_redirect(context, False, False)
        assert first.location.endswith("needs_client_redirection=true")
        context.parameters[NEEDS_CLIENT_REDIRECTION_PARAMETER] = "true"
        with pytest.raises(RequiresHttpAction):
            client.get_credentials(context)

        # Provider sends the user back with credentials.
        del context.parameters[NEEDS_CLIENT_REDIRECTION_PARAMETER]
        handler.credentials = credentials
        assert client.get_credentials(context) is credentials
        profile = client.get_user_profile(credentials, context)
        assert profile.typed_id == "StubClient#jdoe"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class TestGetUserProfile:
    def test_none_credentials_skip_build(self, context, handler):
        client = _client(handler)

        assert client.get_user_profile(None, context) is None
        assert "build_profile" not in handler.calls

    def test_profile_gets_client_name(self, context, handler):
        client = _client(handler)
        credentials = UsernamePasswordCredentials(username="jdoe", password="x")

        profile = client.get_user_profile(credentials, context)

        assert profile.client_name == "StubClient"
        assert profile.typed_id == "StubClient#jdoe"

    def test_none_profile_skips_generators(self, context):
        class NoProfileHandler(RecordingHandler):
            def build_profile(self, client, credentials, context):
                return None

        seen = []
        client = _client(NoProfileHandler(), generators=[seen.append])
        credentials = UsernamePasswordCredentials(username="jdoe", password="x")

        assert client.get_user_profile(credentials, context) is None
        assert seen == []

    def test_profile_creator_replaces_handler(self, context, handler):
        client = _client(handler, profile_creator=AuthenticatorProfileCreator())
        credentials = UsernamePasswordCredentials(
            username="jdoe", password="x", user_profile=UserProfile(id="from-authenticator")
        )

        profile = client.get_user_profile(credentials, context)

        assert profile.id == "from-authenticator"
        assert "build_profile" not in handler.calls

    def test_generators_run_in_registration_order(self, context):
        def add_department(profile):
            profile.add_attribute("department", "eng")

        def role_from_department(profile):
            department = profile.attributes.get("department")
            if department:
                profile.add_role(f"ROLE_{department.upper()}")

        credentials = UsernamePasswordCredentials(username="jdoe", password="x")

        forward = _client(
            RecordingHandler(), generators=[add_department, role_from_department]
        )
        backward = _client(
            RecordingHandler(), generators=[role_from_department, add_department]
        )

        assert forward.get_user_profile(credentials, context).roles == ["ROLE_ENG"]
        assert backward.get_user_profile(credentials, context).roles == []


# ---------------------------------------------------------------------------
# Contextual callback URL
# ---------------------------------------------------------------------------


class TestContextualCallbackUrl:
    def test_default_port_is_omitted(self, handler):
        client = _client(handler, callback_url="/cb", contextual=True)
        context = MockWebContext(scheme="https", server_name="example.com", server_port=443)
        assert client.get_contextual_callback_url(context) == "https://example.com/cb"

    def test_non_default_port_is_kept(self, handler):
        client = _client(handler, callback_url="/cb", contextual=True)
        context = MockWebContext(scheme="https", server_name="example.com", server_port=8443)
        assert client.get_contextual_callback_url(context) == "https://example.com:8443/cb"

    def test_http_port_80_is_omitted(self, handler):
        client = _client(handler, callback_url="/cb", contextual=True)
        context = MockWebContext(scheme="http", server_name="example.com", server_port=80)
        assert client.get_contextual_callback_url(context) == "http://example.com/cb"

    def test_disabled_returns_url_unchanged(self, handler):
        client = _client(handler, callback_url="/cb")
        context = MockWebContext(scheme="https", server_name="example.com", server_port=443)
        assert client.get_contextual_callback_url(context) == "/cb"

    def test_absolute_url_unchanged(self, handler):
        client = _client(handler, callback_url="https://auth.example.org/cb", contextual=True)
        context = MockWebContext(scheme="http", server_name="example.com", server_port=8080)
        assert client.get_contextual_callback_url(context) == "https://auth.example.org/cb"

    def test_no_context_returns_url(self, handler):
        client = _client(handler, callback_url="/cb", contextual=True)
        assert client.get_contextual_callback_url(None) == "/cb"


# ---------------------------------------------------------------------------
# Naming, configuration and initialization
# ---------------------------------------------------------------------------


class TestClientConfiguration:
    def test_configured_name(self, handler):
        assert _client(handler, name="Facebook").name == "Facebook"

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_name_falls_back_to_handler_class(self, handler, blank):
        assert _client(handler, name=blank).name == "RecordingHandler"

    def test_unnamed_client_uses_handler_class(self, handler):
        client = AuthenticationClient(handler)
        assert client.name == "RecordingHandler"
        assert client.loop_guard.key == "RecordingHandler$attemptedAuthentication"

    def test_with_callback_url_returns_copy(self, handler):
        client = _client(handler, callback_url="/one")
        copy = client.with_callback_url("/two")
        assert copy.callback_url == "/two"
        assert client.callback_url == "/one"
        assert copy.name == client.name

    def test_config_is_frozen(self, handler):
        client = _client(handler)
        with pytest.raises(Exception):
            client.config.name = "Other"

    def test_repr_mentions_name(self, handler):
        assert "StubClient" in repr(_client(handler))


class TestInit:
    def test_handler_initialized_once(self, context, handler):
        client = _client(handler)

        client.resolve_redirect(context, False, False)
        client.get_credentials(context)
        client.get_user_profile(None, context)

        assert handler.init_calls == 1

    def test_indirect_without_callback_is_rejected(self, context, handler):
        client = AuthenticationClient(handler)
        with pytest.raises(InvalidUsageError, match="callback URL"):
            client.resolve_redirect(context, True, False)

    def test_direct_without_callback_is_accepted(self, context, direct_handler):
        client = AuthenticationClient(direct_handler)
        outcome = client.resolve_redirect(context, True, False)
        assert outcome == direct_handler.outcome

    def test_failed_init_is_retried(self, context):
        class FlakyHandler(RecordingHandler):
            def initialize(self, client):
                self.init_calls += 1
                if self.init_calls == 1:
                    raise InvalidUsageError("not yet")

        handler = FlakyHandler()
        client = _client(handler)

        with pytest.raises(InvalidUsageError):
            client.init()
        client.init()
        client.init()

        assert handler.init_calls == 2

    def test_concurrent_first_use_initializes_once(self):
        barrier = threading.Barrier(8)

        class SlowHandler(RecordingHandler):
            def initialize(self, client):
                self.init_calls += 1

        handler = SlowHandler()
        client = _client(handler)

        def run(_):
            barrier.wait()
            return client.resolve_redirect(MockWebContext(), False, False)

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(run, range(8)))

        assert handler.init_calls == 1
        assert {outcome.location for outcome in outcomes} == {
            "/callback?needs_client_redirection=true"
        }
