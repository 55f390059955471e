"""
payapp_config -- single public entrypoint for run configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``. No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``payapp_kernel`` and below
    ``payapp_services`` / ``scripts``. The engines never import it;
    services pass the relevant values (sheet titles, rates) in.

Failure modes:
    - ``FileNotFoundError`` -- override file does not exist.
    - ``yaml.YAMLError`` -- override file is not valid YAML.
    - ``KeyError`` / ``ValueError`` -- merged configuration is invalid.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PAYAPP_CONFIG_TRACE`` log entry with the config_id, version,
    checksum and override path, tying each generated document to the
    configuration that shaped it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from payapp_config.loader import (
    compute_checksum,
    load_yaml_file,
    merge_config,
    parse_config,
)
from payapp_config.schema import (
    RETAINAGE_SOURCES,
    NumberFormats,
    PayAppConfig,
    RetainageDefaults,
    SheetTitles,
)

_logger = logging.getLogger("payapp.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "PAYAPP_CONFIG"


def get_active_config(path: Path | str | None = None) -> PayAppConfig:
    """The public configuration entrypoint.

    Loads the packaged defaults and merges an override file over them.
    The override is ``path`` when given, otherwise the file named by the
    ``PAYAPP_CONFIG`` environment variable, otherwise none.

    Returns:
        PayAppConfig -- frozen and validated.

    Raises:
        FileNotFoundError: If the override file does not exist.
        ValueError: If the merged configuration is invalid.
    """
    data = load_yaml_file(DEFAULTS_PATH)

    override_path: Path | None = None
    if path is not None:
        override_path = Path(path)
    elif os.environ.get(CONFIG_ENV_VAR):
        override_path = Path(os.environ[CONFIG_ENV_VAR])

    if override_path is not None:
        data = merge_config(data, load_yaml_file(override_path))

    config = parse_config(data)

    _logger.info(
        "PAYAPP_CONFIG_TRACE",
        extra={
            "trace_type": "PAYAPP_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "config_checksum": config.checksum,
            "override_path": str(override_path) if override_path else None,
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULTS_PATH",
    "NumberFormats",
    "PayAppConfig",
    "RETAINAGE_SOURCES",
    "RetainageDefaults",
    "SheetTitles",
    "compute_checksum",
    "get_active_config",
    "load_yaml_file",
    "merge_config",
    "parse_config",
]
