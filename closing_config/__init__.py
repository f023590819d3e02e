"""
closing_config -- single public entrypoint for closing configuration.

``get_active_config()`` is the only way workflows obtain configuration.
It loads ``CLOSING_CONFIG_PATH`` when that variable is set and the bundled
``defaults.yaml`` otherwise, and logs a ``closing_config_loaded`` record
with the configuration checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from closing_config.loader import load_config
from closing_config.schema import AccountRoles, ClosingConfig, DocPrefixes
from closing_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "CLOSING_CONFIG_PATH"


def get_active_config(path: Path | str | None = None) -> ClosingConfig:
    """
    Load the active configuration.

    Args:
        path: Explicit YAML file.  Defaults to ``$CLOSING_CONFIG_PATH`` or
            the bundled defaults.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    config = load_config(Path(path))
    _logger.info("closing_config_loaded", extra={
        "path": str(path),
        "checksum": config.checksum,
        "locked_until": config.locked_until,
    })
    return config


__all__ = [
    "AccountRoles",
    "ClosingConfig",
    "DocPrefixes",
    "get_active_config",
]
