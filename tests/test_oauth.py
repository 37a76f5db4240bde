import base64
import os
import tempfile
import threading
import time
import unittest
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import requests

from fakes import FakeClock, FakeResponse, FakeSession
from smartweather.errors import AuthExchangeError, NotAuthorizedError, RefreshError
from smartweather.oauth import (
    VERIFIER_CHARSET,
    CredentialManager,
    OAuthConfig,
    code_challenge,
    code_from_redirect,
)
from smartweather.token_store import CredentialRecord, TokenStore

TOKEN_URL = "https://auth.example.test/oauth/token"
AUTH_URL = "https://auth.example.test/oauth/authorize"


def make_config(secret=""):
    return OAuthConfig(
        client_id="client-123",
        client_secret=secret,
        redirect_uri="https://example.test/callback",
        scope="r:devices:* r:locations:*",
        authorization_endpoint=AUTH_URL,
        token_endpoint=TOKEN_URL,
        timeout=30,
    )


def token_payload(**overrides):
    payload = {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_in": 3600,
        "token_type": "bearer",
    }
    payload.update(overrides)
    return payload


class OAuthTestCase(unittest.TestCase):
    secret = ""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = TokenStore(Path(self.tmp.name) / "oauth.db")
        self.clock = FakeClock()
        self.session = FakeSession()
        self.manager = CredentialManager(make_config(self.secret), self.store, session=self.session, clock=self.clock)

    def tearDown(self):
        self.tmp.cleanup()

    def now_ms(self):
        return int(self.clock() * 1000)


class PkceHelpersTest(unittest.TestCase):
    def test_challenge_matches_rfc7636_example(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        self.assertEqual(code_challenge(verifier), "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM")

    def test_code_from_redirect(self):
        self.assertEqual(code_from_redirect("  ABC123 "), ("ABC123", None))
        self.assertEqual(
            code_from_redirect("https://example.test/callback?code=ABC123XYZ&state=xyz"),
            ("ABC123XYZ", "xyz"),
        )
        self.assertEqual(code_from_redirect("code=QQQ"), ("QQQ", None))
        self.assertEqual(code_from_redirect(""), ("", None))


class BeginAuthorizationTest(OAuthTestCase):
    def test_pkce_url_and_stored_verifier(self):
        request = self.manager.begin_authorization()
        parsed = urlparse(request.url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}

        self.assertEqual(f"{parsed.scheme}://{parsed.netloc}{parsed.path}", AUTH_URL)
        self.assertEqual(request.method, "S256")
        self.assertEqual(params["client_id"], "client-123")
        self.assertEqual(params["response_type"], "code")
        self.assertEqual(params["redirect_uri"], "https://example.test/callback")
        self.assertEqual(params["scope"], "r:devices:* r:locations:*")
        self.assertEqual(params["code_challenge_method"], "S256")
        self.assertEqual(params["state"], request.state)
        self.assertEqual(len(request.state), 32)

        verifier = self.store.load_verifier()
        self.assertEqual(len(verifier), 128)
        self.assertTrue(set(verifier) <= set(VERIFIER_CHARSET))
        self.assertEqual(params["code_challenge"], code_challenge(verifier))
        self.assertNotIn("=", params["code_challenge"])
        self.assertEqual(self.store.load_state(), request.state)
        self.assertEqual(self.session.calls, [])

    def test_second_begin_overwrites_verifier(self):
        self.manager.begin_authorization()
        first = self.store.load_verifier()
        self.manager.begin_authorization()
        self.assertNotEqual(self.store.load_verifier(), first)

    def test_pending_request_is_shared_between_managers(self):
        self.assertIsNone(self.manager.pending_authorization())
        first = self.manager.begin_authorization()
        other = CredentialManager(make_config(), self.store, session=self.session, clock=self.clock)

        pending = other.pending_authorization()
        self.assertEqual(pending, first)
        self.assertEqual(self.store.load_state(), first.state)

        self.session.responses.append(FakeResponse(200, token_payload()))
        self.manager.complete_authorization("code", state=first.state)
        self.assertTrue(self.manager.is_authorized())
        self.assertIsNone(other.pending_authorization())


class SecretAuthorizationTest(OAuthTestCase):
    secret = "s3cret"

    def test_secret_omits_pkce_and_clears_verifier(self):
        self.store.save_verifier("stale")
        request = self.manager.begin_authorization()
        params = parse_qs(urlparse(request.url).query)
        self.assertEqual(request.method, "client_secret_basic")
        self.assertNotIn("code_challenge", params)
        self.assertNotIn("code_challenge_method", params)
        self.assertIsNone(self.store.load_verifier())

    def test_exchange_uses_basic_auth(self):
        self.manager.begin_authorization()
        self.session.responses.append(FakeResponse(200, token_payload()))
        self.manager.complete_authorization("the-code")

        call = self.session.calls[0]
        expected = base64.b64encode(b"client-123:s3cret").decode("ascii")
        self.assertEqual(call["headers"]["Authorization"], f"Basic {expected}")
        self.assertNotIn("client_id", call["data"])
        self.assertNotIn("code_verifier", call["data"])
        self.assertTrue(self.manager.is_authorized())


class CompleteAuthorizationTest(OAuthTestCase):
    def test_success_persists_and_clears_verifier(self):
        self.manager.begin_authorization()
        verifier = self.store.load_verifier()
        self.session.responses.append(FakeResponse(200, token_payload()))

        record = self.manager.complete_authorization("the-code")

        call = self.session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], TOKEN_URL)
        self.assertEqual(call["timeout"], 30)
        self.assertEqual(
            call["data"],
            {
                "grant_type": "authorization_code",
                "code": "the-code",
                "redirect_uri": "https://example.test/callback",
                "code_verifier": verifier,
                "client_id": "client-123",
            },
        )
        self.assertNotIn("Authorization", call["headers"])
        self.assertEqual(record.access_token, "access-1")
        self.assertEqual(record.issued_at_ms, self.now_ms())
        self.assertTrue(self.manager.is_authorized())
        self.assertIsNone(self.store.load_verifier())
        self.assertIsNone(self.store.load_state())

    def test_defaults_for_optional_fields(self):
        self.session.responses.append(FakeResponse(200, {"access_token": "only"}))
        record = self.manager.complete_authorization("code")
        self.assertEqual(record.refresh_token, "")
        self.assertEqual(record.expires_in, 86400)
        self.assertEqual(record.token_type, "Bearer")

    def test_explicit_zero_expiry_is_kept(self):
        self.session.responses.append(FakeResponse(200, {"access_token": "short", "refresh_token": "r", "expires_in": 0}))
        record = self.manager.complete_authorization("code")
        self.assertEqual(record.expires_in, 0)
        self.assertEqual(self.store.load().expires_in, 0)
        self.assertTrue(self.manager.is_expired(record))

    def test_http_error_raises_and_clears_verifier(self):
        self.manager.begin_authorization()
        self.session.responses.append(FakeResponse(400, text='{"error":"invalid_grant"}'))
        with self.assertRaises(AuthExchangeError) as ctx:
            self.manager.complete_authorization("bad-code")
        self.assertEqual(ctx.exception.status, 400)
        self.assertIn("invalid_grant", ctx.exception.body)
        self.assertFalse(self.manager.is_authorized())
        self.assertIsNone(self.store.load_verifier())

    def test_network_error_is_exchange_error(self):
        self.manager.begin_authorization()
        self.session.responses.append(requests.ConnectionError("down"))
        with self.assertRaises(AuthExchangeError) as ctx:
            self.manager.complete_authorization("code")
        self.assertIsNone(ctx.exception.status)
        self.assertIsNone(self.store.load_verifier())

    def test_response_without_access_token(self):
        self.session.responses.append(FakeResponse(200, {"token_type": "bearer"}))
        with self.assertRaises(AuthExchangeError):
            self.manager.complete_authorization("code")
        self.assertFalse(self.manager.is_authorized())

    def test_state_mismatch_rejected_without_request(self):
        self.manager.begin_authorization()
        with self.assertRaises(AuthExchangeError):
            self.manager.complete_authorization("code", state="forged")
        self.assertEqual(self.session.calls, [])
        self.assertIsNone(self.store.load_verifier())

    def test_matching_state_accepted(self):
        request = self.manager.begin_authorization()
        self.session.responses.append(FakeResponse(200, token_payload()))
        self.manager.complete_authorization("code", state=request.state)
        self.assertTrue(self.manager.is_authorized())

    def test_empty_code(self):
        with self.assertRaises(AuthExchangeError):
            self.manager.complete_authorization("   ")
        self.assertEqual(self.session.calls, [])


class AccessTokenTest(OAuthTestCase):
    def store_record(self, expires_in, refresh_token="refresh-1"):
        self.store.save(
            CredentialRecord(
                access_token="access-old",
                refresh_token=refresh_token,
                expires_in=expires_in,
                issued_at_ms=self.now_ms(),
            )
        )

    def test_not_authorized_without_record(self):
        self.assertFalse(self.manager.is_authorized())
        with self.assertRaises(NotAuthorizedError):
            self.manager.get_valid_access_token()

    def test_six_minutes_left_returns_stored_token(self):
        self.store_record(expires_in=6 * 60)
        self.assertEqual(self.manager.get_valid_access_token(), "access-old")
        self.assertEqual(self.session.calls, [])

    def test_four_minutes_left_refreshes(self):
        self.store_record(expires_in=4 * 60)
        self.session.responses.append(FakeResponse(200, token_payload(access_token="access-new", refresh_token="refresh-2")))

        self.assertEqual(self.manager.get_valid_access_token(), "access-new")
        call = self.session.calls[0]
        self.assertEqual(call["data"]["grant_type"], "refresh_token")
        self.assertEqual(call["data"]["refresh_token"], "refresh-1")
        self.assertEqual(call["data"]["client_id"], "client-123")
        self.assertEqual(self.store.load().refresh_token, "refresh-2")

    def test_refresh_failure_forces_reauthorization(self):
        self.store_record(expires_in=60)
        self.session.responses.append(FakeResponse(400, text="invalid_grant"))

        with self.assertRaises(NotAuthorizedError) as ctx:
            self.manager.get_valid_access_token()
        self.assertIsInstance(ctx.exception.__cause__, RefreshError)
        self.assertFalse(self.manager.is_authorized())

    def test_expired_without_refresh_token(self):
        self.store_record(expires_in=60, refresh_token="")
        with self.assertRaises(NotAuthorizedError):
            self.manager.get_valid_access_token()
        self.assertEqual(self.session.calls, [])
        self.assertFalse(self.manager.is_authorized())

    def test_expiry_reached_by_clock(self):
        self.store_record(expires_in=3600)
        self.assertEqual(self.manager.get_valid_access_token(), "access-old")
        self.clock.advance(3600 - 299)
        self.session.responses.append(FakeResponse(200, token_payload(access_token="access-new")))
        self.assertEqual(self.manager.get_valid_access_token(), "access-new")


class RefreshTest(OAuthTestCase):
    def test_requires_refresh_token(self):
        with self.assertRaises(RefreshError):
            self.manager.refresh()
        self.assertEqual(self.session.calls, [])

    def test_keeps_previous_refresh_token_when_omitted(self):
        self.store.save(CredentialRecord("a", "keep-me", 3600, self.now_ms()))
        self.session.responses.append(FakeResponse(200, {"access_token": "b", "expires_in": 100}))
        record = self.manager.refresh()
        self.assertEqual(record.refresh_token, "keep-me")
        self.assertEqual(record.expires_in, 100)

    def test_network_failure_clears_credentials(self):
        self.store.save(CredentialRecord("a", "r", 3600, self.now_ms()))
        self.session.responses.append(requests.Timeout("slow"))
        with self.assertRaises(RefreshError):
            self.manager.refresh()
        self.assertIsNone(self.store.load())


class SecretRefreshTest(OAuthTestCase):
    secret = "s3cret"

    def test_refresh_uses_basic_auth(self):
        self.store.save(CredentialRecord("a", "r", 3600, self.now_ms()))
        self.session.responses.append(FakeResponse(200, token_payload()))
        self.manager.refresh()
        call = self.session.calls[0]
        self.assertTrue(call["headers"]["Authorization"].startswith("Basic "))
        self.assertNotIn("client_id", call["data"])


class SlowTokenSession:
    """Token endpoint that takes a while and hands out a new token per call."""

    def __init__(self, delay=0.2):
        self.delay = delay
        self.posts = 0
        self._guard = threading.Lock()

    def post(self, url, **kwargs):
        with self._guard:
            self.posts += 1
            n = self.posts
        time.sleep(self.delay)
        return FakeResponse(200, token_payload(access_token=f"new-{n}", refresh_token=f"refresh-{n + 1}"))


class SingleFlightRefreshTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmp.name) / "shared.db"
        self.clock = FakeClock()
        self.session = SlowTokenSession()

    def tearDown(self):
        self.tmp.cleanup()

    def race(self, *stores):
        stores[0].save(CredentialRecord("old", "refresh-1", 60, int(self.clock() * 1000)))
        managers = [CredentialManager(make_config(), store, session=self.session, clock=self.clock) for store in stores]
        tokens = []
        errors = []

        def worker(manager):
            try:
                tokens.append(manager.get_valid_access_token())
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(m,)) for m in managers]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        self.assertEqual(errors, [])
        return tokens

    def test_two_managers_refresh_once(self):
        tokens = self.race(TokenStore(self.db_path), TokenStore(self.db_path))
        self.assertEqual(self.session.posts, 1)
        self.assertEqual(tokens, ["new-1", "new-1"])

    def test_relative_and_absolute_paths_share_the_lock(self):
        relative = os.path.relpath(self.db_path)
        tokens = self.race(TokenStore(relative), TokenStore(self.db_path.resolve()))
        self.assertEqual(self.session.posts, 1)
        self.assertEqual(tokens, ["new-1", "new-1"])


class LogoutTest(OAuthTestCase):
    def test_logout_clears_everything(self):
        self.manager.begin_authorization()
        self.store.save(CredentialRecord("a", "r", 3600, self.now_ms()))
        self.manager.logout()
        self.assertFalse(self.manager.is_authorized())
        self.assertIsNone(self.store.load_verifier())
        self.assertIsNone(self.store.load_state())


if __name__ == "__main__":
    unittest.main()
