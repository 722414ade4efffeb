"""Killswitch guard.

If killswitch.txt exists (workspace root by default, or KILLSWITCH_PATH),
the scheduler halts at its next tick: no further fetches, no new buys.

Usage:
    python3 -m tweetsniper.guards.killswitch

Exit codes:
    0 = no killswitch (safe to proceed)
    1 = killswitch ACTIVE (halt immediately)
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from tweetsniper.config import WORKSPACE

KILLSWITCH_FILE = WORKSPACE / "killswitch.txt"


def resolve_path(path: str | Path | None = None) -> Path:
    if path is None:
        return KILLSWITCH_FILE
    path = Path(path)
    return path if path.is_absolute() else WORKSPACE / path


def is_active(path: str | Path | None = None) -> bool:
    return resolve_path(path).exists()


def check_killswitch(path: str | Path | None = None) -> dict:
    """Check if the killswitch file exists."""
    ks = resolve_path(path)
    if ks.exists():
        try:
            content = ks.read_text().strip()
        except OSError:
            content = ""
        return {
            "status": "ACTIVE",
            "message": f"Killswitch is ACTIVE. Reason: {content or 'No reason given'}",
            "file": str(ks),
        }
    return {
        "status": "CLEAR",
        "message": "No killswitch. Safe to proceed.",
    }


def main() -> None:
    result = check_killswitch()
    print(json.dumps(result, indent=2))
    sys.exit(1 if result["status"] == "ACTIVE" else 0)


if __name__ == "__main__":
    main()
