"""Global switch for training progress bars."""

import os

_enabled: bool = True

DISABLE_ENV_VAR = "BYTEPAIR_DISABLE_PROGRESS"


def enable_progress() -> None:
    """Enable progress bars for all bytepair operations."""
    global _enabled
    _enabled = True


def disable_progress() -> None:
    """Disable progress bars for all bytepair operations."""
    global _enabled
    _enabled = False


def _is_enabled() -> bool:
    """Check if progress is enabled (the environment variable wins)."""
    if os.environ.get(DISABLE_ENV_VAR, "").strip() == "1":
        return False
    return _enabled
