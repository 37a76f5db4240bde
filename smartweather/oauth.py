"""
OAuth 2.0 Authorization Code flow (with PKCE) against the SmartThings API.

The credential lives in the token store as a single JSON record. A refresh or
code exchange holds a lock keyed on the store's namespace so two Streamlit
sessions, or a session and the autorefresh tick, never race on that record.
"""

import base64
import hashlib
import os
import secrets
import string
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse

import requests

from smartweather.errors import AuthExchangeError, NotAuthorizedError, RefreshError
from smartweather.log import log
from smartweather.token_store import DEFAULT_EXPIRES_IN, CredentialRecord, TokenStore

AUTHORIZATION_ENDPOINT = "https://api.smartthings.com/oauth/authorize"
TOKEN_ENDPOINT = "https://api.smartthings.com/oauth/token"
DEFAULT_SCOPE = "r:devices:* r:locations:*"
HTTP_TIMEOUT = int(os.getenv("SMARTTHINGS_HTTP_TIMEOUT", "30"))

VERIFIER_CHARSET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 128
STATE_LENGTH = 32
EXPIRY_BUFFER_MS = 5 * 60 * 1000

_NAMESPACE_LOCKS: dict[tuple[str, str], threading.RLock] = {}
_NAMESPACE_LOCKS_GUARD = threading.Lock()


def namespace_lock(store: TokenStore) -> threading.RLock:
    key = (str(Path(store.db_path).expanduser().resolve()), store.namespace)
    with _NAMESPACE_LOCKS_GUARD:
        lock = _NAMESPACE_LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _NAMESPACE_LOCKS[key] = lock
        return lock


def random_string(length: int) -> str:
    return "".join(secrets.choice(VERIFIER_CHARSET) for _ in range(length))


def code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def code_from_redirect(value: str) -> tuple[str, str | None]:
    """
    Accept what the user pasted after approving access: either the bare code
    or the whole callback URL. Returns (code, state).
    """
    text = (value or "").strip()
    if "code=" not in text:
        return text, None
    parsed = urlparse(text)
    query = parsed.query or text.split("?", 1)[-1]
    params = parse_qs(query)
    code = (params.get("code") or [""])[0].strip()
    state = (params.get("state") or [None])[0]
    return code, state


@dataclass
class OAuthConfig:
    client_id: str
    redirect_uri: str
    client_secret: str = ""
    scope: str = DEFAULT_SCOPE
    authorization_endpoint: str = AUTHORIZATION_ENDPOINT
    token_endpoint: str = TOKEN_ENDPOINT
    timeout: int = HTTP_TIMEOUT

    @property
    def uses_pkce(self) -> bool:
        return not self.client_secret

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        return cls(
            client_id=os.getenv("SMARTTHINGS_CLIENT_ID", "").strip(),
            client_secret=os.getenv("SMARTTHINGS_CLIENT_SECRET", "").strip(),
            redirect_uri=os.getenv("SMARTTHINGS_REDIRECT_URI", "").strip(),
            scope=os.getenv("SMARTTHINGS_SCOPE", DEFAULT_SCOPE),
            authorization_endpoint=os.getenv("SMARTTHINGS_AUTH_URL", AUTHORIZATION_ENDPOINT),
            token_endpoint=os.getenv("SMARTTHINGS_TOKEN_URL", TOKEN_ENDPOINT),
            timeout=HTTP_TIMEOUT,
        )


@dataclass
class AuthorizationRequest:
    url: str
    method: str
    state: str


class CredentialManager:
    def __init__(self, config: OAuthConfig, store: TokenStore, session=None, clock=time.time):
        self.config = config
        self.store = store
        self.session = session or requests.Session()
        self._clock = clock
        self._lock = namespace_lock(store)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _authorization_request(self, state: str, verifier: str | None) -> AuthorizationRequest:
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "scope": self.config.scope,
            "state": state,
        }
        method = "client_secret_basic"
        if verifier:
            params["code_challenge"] = code_challenge(verifier)
            params["code_challenge_method"] = "S256"
            method = "S256"
        url = f"{self.config.authorization_endpoint}?{urlencode(params)}"
        return AuthorizationRequest(url=url, method=method, state=state)

    def begin_authorization(self) -> AuthorizationRequest:
        state = random_string(STATE_LENGTH)
        verifier = None
        with self._lock:
            if self.config.uses_pkce:
                verifier = random_string(VERIFIER_LENGTH)
                self.store.save_verifier(verifier)
            else:
                self.store.clear_verifier()
            self.store.save_state(state)

        request = self._authorization_request(state, verifier)
        log(f"Authorization started (method={request.method})")
        return request

    def pending_authorization(self) -> AuthorizationRequest | None:
        """
        The request started earlier and not yet exchanged, rebuilt from the
        stored state and verifier. None when nothing is pending.
        """
        with self._lock:
            state = self.store.load_state()
            verifier = self.store.load_verifier() if self.config.uses_pkce else None
        if not state or (self.config.uses_pkce and not verifier):
            return None
        return self._authorization_request(state, verifier)

    def _client_auth(self, body: dict) -> dict:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        if self.config.client_secret:
            raw = f"{self.config.client_id}:{self.config.client_secret}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")
        else:
            body["client_id"] = self.config.client_id
        return headers

    def _post_token(self, body: dict, error_cls) -> dict:
        headers = self._client_auth(body)
        try:
            resp = self.session.post(
                self.config.token_endpoint,
                data=body,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise error_cls(f"Token request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise error_cls("Token endpoint rejected the request", resp.status_code, resp.text or "")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise error_cls("Token response is not JSON", resp.status_code, resp.text or "") from exc
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise error_cls("Token response has no access_token", resp.status_code, resp.text or "")
        return payload

    def _record_from_payload(self, payload: dict, previous_refresh: str = "") -> CredentialRecord:
        raw_expires = payload.get("expires_in")
        try:
            expires_in = DEFAULT_EXPIRES_IN if raw_expires is None else int(raw_expires)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return CredentialRecord(
            access_token=str(payload["access_token"]),
            refresh_token=str(payload.get("refresh_token") or previous_refresh or ""),
            expires_in=expires_in,
            issued_at_ms=self._now_ms(),
            token_type=str(payload.get("token_type") or "Bearer"),
        )

    def complete_authorization(self, code: str, state: str | None = None) -> CredentialRecord:
        code = (code or "").strip()
        with self._lock:
            try:
                if not code:
                    raise AuthExchangeError("Authorization code is empty")
                expected_state = self.store.load_state()
                if state is not None and expected_state and state != expected_state:
                    raise AuthExchangeError("Authorization state does not match; start again")

                body = {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.config.redirect_uri,
                }
                if self.config.uses_pkce:
                    verifier = self.store.load_verifier()
                    if verifier:
                        body["code_verifier"] = verifier
                payload = self._post_token(body, AuthExchangeError)
                record = self._record_from_payload(payload)
                self.store.save(record)
            except AuthExchangeError as exc:
                log(f"Token exchange failed: {exc}")
                raise
            finally:
                self.store.clear_pending()

        log(f"Authorized; token valid for {record.expires_in}s")
        return record

    def is_authorized(self) -> bool:
        record = self.store.load()
        return bool(record and record.access_token)

    def is_expired(self, record: CredentialRecord) -> bool:
        if not record.issued_at_ms or not record.expires_in:
            return True
        return self._now_ms() >= record.expires_at_ms() - EXPIRY_BUFFER_MS

    def refresh(self) -> CredentialRecord:
        with self._lock:
            current = self.store.load()
            if not current or not current.refresh_token:
                raise RefreshError("No refresh token available; authorization required")
            body = {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
            }
            try:
                payload = self._post_token(body, RefreshError)
            except RefreshError as exc:
                log(f"Token refresh failed, clearing credentials: {exc}")
                self.store.clear()
                raise
            record = self._record_from_payload(payload, previous_refresh=current.refresh_token)
            self.store.save(record)
        log("Access token refreshed")
        return record

    def get_valid_access_token(self) -> str:
        record = self.store.load()
        if not record or not record.access_token:
            raise NotAuthorizedError("Not authorized")
        if not self.is_expired(record):
            return record.access_token

        with self._lock:
            # another caller may have refreshed while we waited
            record = self.store.load()
            if not record or not record.access_token:
                raise NotAuthorizedError("Not authorized")
            if not self.is_expired(record):
                return record.access_token
            try:
                record = self.refresh()
            except RefreshError as exc:
                self.store.clear()
                raise NotAuthorizedError("Token refresh failed; authorization required") from exc
        return record.access_token

    def logout(self) -> None:
        with self._lock:
            self.store.clear()
        log("Credentials cleared")
