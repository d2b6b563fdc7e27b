"""
propfin_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  Company defaults (currency, tax table,
    tolerance) are passed to the service from here rather than read as
    ambient state at arbitrary points.

Architecture position:
    Configuration -- YAML-driven.  Sits above ``propfin_kernel`` and
    ``propfin_engines`` and below ``propfin_services``.  The kernel and the
    engines MUST NEVER import from ``propfin_config``.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValidationError`` -- invalid settings.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PROPFIN_CONFIG_TRACE`` log entry containing the config name, version
    and checksum, tying computed documents back to the settings in force.
"""

from __future__ import annotations

from pathlib import Path

from propfin_config.loader import load_engine_config
from propfin_config.schema import EngineConfig
from propfin_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = ["EngineConfig", "get_active_config", "load_engine_config"]


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> EngineConfig:
    """The public configuration entrypoint.

    Args:
        name: Configuration set name; resolves to ``<config_dir>/<name>.yaml``.
        config_dir: Override path to configuration sets directory.
            Defaults to propfin_config/sets/.

    Returns:
        EngineConfig with its source checksum.

    Raises:
        FileNotFoundError: If no configuration set has that name.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No configuration set {name!r} in {sets_dir}")

    config = load_engine_config(path)

    _logger.info(
        "PROPFIN_CONFIG_TRACE",
        extra={
            "trace_type": "PROPFIN_CONFIG_TRACE",
            "config_name": config.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "base_currency": config.base_currency,
            "tax_rate_count": len(config.tax_rates),
            "source": str(path),
        },
    )
    return config
