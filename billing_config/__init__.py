"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  The kernel never reads configuration files;
    bridges in this package translate a ``BillingConfig`` into kernel
    inputs (series registry, allocator, assembler).

Failure modes:
    - ``FileNotFoundError`` -- config_path does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- schema validation failures.

Audit relevance:
    Every call emits a ``BILLING_CONFIG_TRACE`` log entry with the
    configuration checksum, tying issued numbers to the settings that
    produced them.
"""

from __future__ import annotations

from pathlib import Path

from billing_config.loader import compute_checksum, load_billing_config
from billing_config.schema import BillingConfig
from billing_kernel.logging_config import get_logger

_logger = get_logger("config")


def get_active_config(config_path: Path | str | None = None) -> BillingConfig:
    """
    The ONLY public configuration entrypoint.

    Returns the built-in defaults when ``config_path`` is None, otherwise
    the parsed and validated file.
    """
    if config_path is None:
        config = BillingConfig.with_defaults()
        source = "defaults"
    else:
        config = load_billing_config(config_path)
        source = str(config_path)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "source": source,
            "checksum": compute_checksum(config.to_dict()),
            "series_count": len(config.series),
            "default_due_term": config.default_due_term,
        },
    )
    return config


__all__ = ["BillingConfig", "get_active_config"]
