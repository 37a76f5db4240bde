import os
from datetime import datetime
from pathlib import Path

LOG_PATH = Path(os.getenv("SMARTWEATHER_LOG_PATH", "logs/smartweather.log"))


def log(msg: str) -> None:
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    line = f"{ts} | {msg}"
    print(line, flush=True)
    LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with LOG_PATH.open("a", encoding="utf-8") as f:
        f.write(line + "\n")
