from __future__ import annotations

import os

PRIMARY_PREFIX = "DRIVER_POSTURE_"


def get_env(name: str, default: str | None = None) -> str | None:
    """
    Resolve configuration environment variables.

    Every setting is read from the `DRIVER_POSTURE_` namespace so the monitor can
    share a shell with other pose tooling without clashing on generic names.
    """
    value = os.getenv(f"{PRIMARY_PREFIX}{name}")
    if value is not None:
        return value
    return default

