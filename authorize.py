import os
import sys

from smartweather.errors import AuthExchangeError
from smartweather.oauth import CredentialManager, OAuthConfig, code_from_redirect
from smartweather.token_store import TokenStore

DB_PATH = os.getenv("SMARTWEATHER_DB_PATH", "data/smartweather.db")


def main() -> int:
    config = OAuthConfig.from_env()
    if not config.client_id or not config.redirect_uri:
        print("SMARTTHINGS_CLIENT_ID and SMARTTHINGS_REDIRECT_URI must be set.")
        return 1

    manager = CredentialManager(config, TokenStore(DB_PATH))
    if "--logout" in sys.argv[1:]:
        manager.logout()
        print("Credentials cleared.")
        return 0

    request = manager.begin_authorization()
    print("Open this URL and approve access:")
    print()
    print(request.url)
    print()
    pasted = input("Paste the redirect URL or code: ")
    code, state = code_from_redirect(pasted)
    try:
        record = manager.complete_authorization(code, state=state)
    except AuthExchangeError as e:
        print(f"Authorization failed: {e}")
        return 1
    print(f"Authorized. Token valid for {record.expires_in}s.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
