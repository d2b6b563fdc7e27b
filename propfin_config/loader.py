"""
Configuration Loader (``propfin_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a typed
``propfin_config.schema.EngineConfig``.  Runtime callers go through
``propfin_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* Decimal settings are parsed from their text form; a YAML float such as
  ``0.01`` is read through ``str`` so no binary rounding leaks in.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid values  -> ``ValidationError`` from the schema.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from propfin_config.schema import EngineConfig
from propfin_engines.aging import AgingBucket
from propfin_engines.tax import TaxRate
from propfin_kernel.domain.values import to_decimal


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML scalar (str, int or float) into a Decimal."""
    if isinstance(value, float):
        value = str(value)
    return to_decimal(value, field=field)


def parse_tax_rate(data: dict[str, Any]) -> TaxRate:
    """Parse a TaxRate from a dict."""
    return TaxRate(
        tax_id=str(data["tax_id"]),
        name=data.get("name", str(data["tax_id"])),
        rate_percent=parse_decimal(data["rate_percent"], "rate_percent"),
        inclusive=bool(data.get("inclusive", False)),
    )


def parse_aging_bucket(data: dict[str, Any]) -> AgingBucket:
    """Parse an AgingBucket from a dict."""
    max_days = data.get("max_days")
    return AgingBucket(
        name=data["name"],
        min_days=int(data["min_days"]),
        max_days=int(max_days) if max_days is not None else None,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from a parsed YAML document."""
    kwargs: dict[str, Any] = {}
    for key in ("name", "base_currency", "default_currency"):
        if key in data:
            kwargs[key] = str(data[key])
    for key in ("version", "invoice_payment_terms_days"):
        if key in data:
            kwargs[key] = int(data[key])
    if data.get("default_company_id") is not None:
        kwargs["default_company_id"] = int(data["default_company_id"])
    if "balance_tolerance" in data:
        kwargs["balance_tolerance"] = parse_decimal(
            data["balance_tolerance"], "balance_tolerance"
        )
    if "tax_rates" in data:
        rates = [parse_tax_rate(item) for item in data["tax_rates"] or ()]
        kwargs["tax_rates"] = {rate.tax_id: rate for rate in rates}
    if "aging_buckets" in data:
        kwargs["aging_buckets"] = tuple(
            parse_aging_bucket(item) for item in data["aging_buckets"]
        )
    return EngineConfig(checksum=compute_checksum(data), **kwargs)


def load_engine_config(path: Path | str) -> EngineConfig:
    """Load and parse one configuration file."""
    return parse_engine_config(load_yaml_file(Path(path)))
