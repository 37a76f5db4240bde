import os
import time
from contextlib import closing

import pandas as pd

from smartweather.config_store import connect, get_config, list_keys
from smartweather.token_store import TokenStore

DB_PATH = os.getenv("SMARTWEATHER_DB_PATH", "data/smartweather.db")


def mask(value: str | None) -> str:
    if not value:
        return "--"
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


def main():
    store = TokenStore(DB_PATH)
    record = store.load()
    if record is None:
        print("No stored credential.")
    else:
        remaining = (record.expires_at_ms() - int(time.time() * 1000)) // 1000
        df = pd.DataFrame(
            [
                {
                    "access_token": mask(record.access_token),
                    "refresh_token": mask(record.refresh_token),
                    "token_type": record.token_type,
                    "expires_in": record.expires_in,
                    "seconds_left": remaining,
                }
            ]
        )
        print("Stored credential:")
        print(df.to_string(index=False))

    with closing(connect(DB_PATH)) as conn:
        keys = list_keys(conn)
        rows = [
            {"key": key, "value": mask(get_config(conn, key)) if "token" in key or "verifier" in key else get_config(conn, key)}
            for key in keys
        ]
    if rows:
        print()
        print("Config keys:")
        print(pd.DataFrame(rows).to_string(index=False))


if __name__ == "__main__":
    main()
