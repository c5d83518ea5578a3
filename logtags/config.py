"""
Configuration for logtags, read from LOGTAGS_* environment variables.

A `.env` file in the working directory is honoured through python-dotenv.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "LOGTAGS_"


@dataclass
class ExplorerSettings:
    """Runtime settings for the cache, evaluator and script bridge."""

    batch_size: int = 64            # first read when a pipeline has no take()
    max_batch_size: int = 1024      # cap for the doubling read schedule
    script_timeout: float = 5.0     # seconds per script evaluation, 0 disables
    memoize_tags: bool = True
    debug: bool = False
    log_level: str = "WARNING"


def _env(name: str) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}")


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "y", "on")


def load_settings(**overrides) -> ExplorerSettings:
    """Load settings from the environment; keyword overrides win when not None."""
    load_dotenv(find_dotenv(usecwd=True))
    defaults = ExplorerSettings()

    settings = ExplorerSettings(
        batch_size=max(1, _parse_int(_env("BATCH_SIZE"), defaults.batch_size)),
        max_batch_size=max(1, _parse_int(_env("MAX_BATCH_SIZE"), defaults.max_batch_size)),
        script_timeout=max(0.0, _parse_float(_env("SCRIPT_TIMEOUT"), defaults.script_timeout)),
        memoize_tags=_parse_bool(_env("MEMOIZE_TAGS"), defaults.memoize_tags),
        debug=_parse_bool(_env("DEBUG"), defaults.debug),
        log_level=(_env("LOG_LEVEL") or defaults.log_level).upper(),
    )
    for key, value in overrides.items():
        if value is not None:
            setattr(settings, key, value)
    return settings
