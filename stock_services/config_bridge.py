"""
Translate StockConfig into engine inputs.

Engines never import stock_config; services build engine parameter
objects here.
"""

from __future__ import annotations

from stock_config.schema import StockConfig
from stock_engines.aging import AgeBucket
from stock_engines.alerts import AlertThresholds


def alert_thresholds(config: StockConfig) -> AlertThresholds:
    return AlertThresholds(
        expiry_warning_days=config.expiry_warning_days,
        expiry_high_days=config.expiry_high_days,
        expiry_medium_days=config.expiry_medium_days,
        low_stock_high_ratio=config.low_stock_high_ratio,
        low_stock_medium_ratio=config.low_stock_medium_ratio,
    )


def aging_buckets(config: StockConfig) -> tuple[AgeBucket, ...]:
    return tuple(AgeBucket(name, lo, hi) for name, lo, hi in config.aging_buckets)
