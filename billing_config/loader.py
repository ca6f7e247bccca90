"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a billing configuration YAML file and parses it into the frozen
``billing_config.schema`` dataclasses.  Runtime callers go through
``billing_config.get_active_config()``.

Expected layout (the top-level ``billing`` key is optional)::

    billing:
      default_due_term: Net 30
      default_tax_rate: "15"
      allocation:
        max_attempts: 5
        backoff_seconds: 0.01
      payment_plans:
        min_installments: 2
        max_installments: 12
        default_frequency: monthly
      series:
        - name: invoice
          prefix: INV
          collection: invoices
          padding: 4
          start_value: 1

Series entries override the default series of the same name; new names
are appended.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, bad numbers, failed validation  -> ``ValueError``.
* Series entry without ``name``  -> ``KeyError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    DEFAULT_SERIES_SETTINGS,
    BillingConfig,
    PaymentPlanSettings,
    SeriesSettings,
)

_TOP_LEVEL_KEYS = frozenset(
    {"default_due_term", "default_tax_rate", "allocation", "payment_plans", "series"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} is not a number: {value!r}") from None


def _check_keys(data: dict[str, Any], allowed: frozenset[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"unknown keys in {where}: {', '.join(unknown)}")


def parse_series(data: dict[str, Any], base: SeriesSettings | None = None) -> SeriesSettings:
    """Parse one series entry, starting from ``base`` when overriding a default."""
    _check_keys(
        data,
        frozenset({"name", "prefix", "collection", "padding", "start_value"}),
        "series entry",
    )
    name = str(data["name"])
    if base is None:
        return SeriesSettings(
            name=name,
            prefix=str(data.get("prefix", "")),
            collection=str(data.get("collection", "")),
            padding=int(data.get("padding", 4)),
            start_value=int(data.get("start_value", 1)),
        )
    return replace(
        base,
        prefix=str(data.get("prefix", base.prefix)),
        collection=str(data.get("collection", base.collection)),
        padding=int(data.get("padding", base.padding)),
        start_value=int(data.get("start_value", base.start_value)),
    )


def parse_payment_plans(data: dict[str, Any]) -> PaymentPlanSettings:
    _check_keys(
        data,
        frozenset({"min_installments", "max_installments", "default_frequency"}),
        "payment_plans",
    )
    defaults = PaymentPlanSettings()
    return PaymentPlanSettings(
        min_installments=int(data.get("min_installments", defaults.min_installments)),
        max_installments=int(data.get("max_installments", defaults.max_installments)),
        default_frequency=str(data.get("default_frequency", defaults.default_frequency)),
    )


def parse_billing_config(data: dict[str, Any]) -> BillingConfig:
    """Parse the raw YAML mapping into a validated BillingConfig."""
    if not isinstance(data, dict):
        raise ValueError(f"configuration must be a mapping, got {type(data).__name__}")
    if "billing" in data:
        data = data["billing"] or {}
    _check_keys(data, _TOP_LEVEL_KEYS, "billing")

    series = {s.name: s for s in DEFAULT_SERIES_SETTINGS}
    for entry in data.get("series") or []:
        name = str(entry["name"]) if isinstance(entry, dict) and "name" in entry else None
        if name is None:
            raise KeyError("series entry requires a name")
        series[name] = parse_series(entry, series.get(name))

    allocation = data.get("allocation") or {}
    _check_keys(allocation, frozenset({"max_attempts", "backoff_seconds"}), "allocation")
    defaults = BillingConfig()

    return BillingConfig(
        series=tuple(series.values()),
        default_due_term=str(data.get("default_due_term", defaults.default_due_term)),
        default_tax_rate=_parse_decimal(
            data.get("default_tax_rate", defaults.default_tax_rate), "default_tax_rate"
        ),
        allocation_max_attempts=int(
            allocation.get("max_attempts", defaults.allocation_max_attempts)
        ),
        allocation_backoff_seconds=float(
            allocation.get("backoff_seconds", defaults.allocation_backoff_seconds)
        ),
        payment_plans=parse_payment_plans(data.get("payment_plans") or {}),
    )


def load_billing_config(path: Path | str) -> BillingConfig:
    """Load and parse a billing configuration file."""
    return parse_billing_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
