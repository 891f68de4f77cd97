"""
books_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the only way to obtain settings at runtime through
    ``get_active_config()``.  Services receive a ``BooksConfig`` instance
    and never read files or environment variables themselves.

Architecture position:
    Configuration sits above ``books_kernel`` and below ``books_services``.
    The kernel and engines never import from ``books_config``.

Failure modes:
    - ``FileNotFoundError`` -- the override file named by
      ``BOOKS_CONFIG_PATH`` (or ``config_path``) does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Every successful ``get_active_config()`` call emits a
``books_config_loaded`` log entry carrying the checksum of the merged
settings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from books_config.loader import compute_checksum, load_settings
from books_config.schema import BooksConfig, NumberFormat

_logger = logging.getLogger("books.config")

CONFIG_PATH_ENV = "BOOKS_CONFIG_PATH"


def get_active_config(config_path: Path | str | None = None) -> BooksConfig:
    """
    Load the packaged defaults merged with the company override file.

    Args:
        config_path: Override file.  Falls back to ``$BOOKS_CONFIG_PATH``;
            with neither, the packaged defaults are used alone.

    Raises:
        FileNotFoundError: If the override file does not exist.
        ValueError: If the merged settings fail validation.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_PATH_ENV) or None
    path = Path(config_path) if config_path is not None else None

    settings = load_settings(path)
    config = BooksConfig.from_dict(settings)

    _logger.info(
        "books_config_loaded",
        extra={
            "config_path": str(path) if path else None,
            "checksum": compute_checksum(config.as_dict()),
            "home_jurisdiction": config.home_jurisdiction,
            "enforce_payment_allocation_limit": config.enforce_payment_allocation_limit,
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "BooksConfig",
    "NumberFormat",
    "get_active_config",
]
