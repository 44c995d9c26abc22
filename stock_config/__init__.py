"""
stock_config -- single public entrypoint for stock service configuration.

Responsibility:
    ``get_active_config()`` is the one way services obtain settings.
    Without a path it reads the packaged ``sets/default.yaml``.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and below
    ``stock_services``.  The kernel and engines never import from here;
    services translate StockConfig into engine inputs.

Audit relevance:
    Every call emits a ``STOCK_CONFIG_TRACE`` log entry with the config id
    and checksum, tying a run to the exact settings it used.
"""

from __future__ import annotations

from pathlib import Path

from stock_config.loader import compute_checksum, load_config
from stock_config.schema import StockConfig
from stock_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> StockConfig:
    """
    Load the active configuration.

    Args:
        path: YAML file to read.  Defaults to the packaged defaults.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ValueError: the file holds unknown keys or invalid values.
    """
    config = load_config(path or DEFAULT_CONFIG_PATH)
    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_id": config.config_id,
            "checksum": compute_checksum(config.to_dict()),
            "source": str(path or DEFAULT_CONFIG_PATH),
        },
    )
    return config


__all__ = ["StockConfig", "get_active_config", "load_config", "DEFAULT_CONFIG_PATH"]
