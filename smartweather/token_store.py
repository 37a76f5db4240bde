from contextlib import closing
from dataclasses import asdict, dataclass
from pathlib import Path

from smartweather.config_store import connect, delete_config, get_config, get_json, set_config, set_json

DEFAULT_NAMESPACE = "smartthings"
DEFAULT_EXPIRES_IN = 86400


@dataclass
class CredentialRecord:
    access_token: str
    refresh_token: str
    expires_in: int
    issued_at_ms: int
    token_type: str = "Bearer"

    def expires_at_ms(self) -> int:
        return self.issued_at_ms + self.expires_in * 1000

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialRecord | None":
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                access_token=str(data.get("access_token") or ""),
                refresh_token=str(data.get("refresh_token") or ""),
                expires_in=int(data.get("expires_in") or 0),
                issued_at_ms=int(data.get("issued_at_ms") or 0),
                token_type=str(data.get("token_type") or "Bearer"),
            )
        except (TypeError, ValueError):
            return None


class TokenStore:
    """Credential record plus the transient PKCE verifier and state, keyed by namespace."""

    def __init__(self, db_path: str | Path, namespace: str = DEFAULT_NAMESPACE):
        self.db_path = db_path
        self.namespace = namespace
        self.tokens_key = f"{namespace}_oauth_tokens"
        self.verifier_key = f"{namespace}_code_verifier"
        self.state_key = f"{namespace}_oauth_state"

    def load(self) -> CredentialRecord | None:
        with closing(connect(self.db_path)) as conn:
            data = get_json(conn, self.tokens_key)
        if data is None:
            return None
        return CredentialRecord.from_dict(data)

    def save(self, record: CredentialRecord) -> None:
        with closing(connect(self.db_path)) as conn:
            set_json(conn, self.tokens_key, asdict(record))

    def clear(self) -> None:
        with closing(connect(self.db_path)) as conn:
            delete_config(conn, self.tokens_key, self.verifier_key, self.state_key)

    def load_verifier(self) -> str | None:
        with closing(connect(self.db_path)) as conn:
            return get_config(conn, self.verifier_key)

    def save_verifier(self, verifier: str) -> None:
        with closing(connect(self.db_path)) as conn:
            set_config(conn, self.verifier_key, verifier)

    def load_state(self) -> str | None:
        with closing(connect(self.db_path)) as conn:
            return get_config(conn, self.state_key)

    def save_state(self, state: str) -> None:
        with closing(connect(self.db_path)) as conn:
            set_config(conn, self.state_key, state)

    def clear_pending(self) -> None:
        with closing(connect(self.db_path)) as conn:
            delete_config(conn, self.verifier_key, self.state_key)

    def clear_verifier(self) -> None:
        with closing(connect(self.db_path)) as conn:
            delete_config(conn, self.verifier_key)
