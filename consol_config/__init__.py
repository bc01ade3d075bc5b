"""
consol_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the one way to obtain configuration at runtime:
    ``get_active_config()``.  Services receive the resulting ``EngineConfig``
    by constructor injection and never read files themselves.

Architecture position:
    Configuration -- sits above ``consol_engines`` and ``consol_kernel`` and
    below ``consol_modules``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- an explicit path that does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- out-of-range threshold, bad regex, unknown account
      type.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CONSOL_CONFIG_TRACE`` log entry with the source path and the SHA-256
    checksum of the loaded document.
"""

from __future__ import annotations

import logging
from pathlib import Path

from consol_config.loader import compute_checksum, load_engine_config, load_yaml_file
from consol_config.schema import (
    DuplicateDetectionConfig,
    EngineConfig,
    IntercompanyConfig,
    TrialBalanceConfig,
)
from consol_engines.name_matching import NormalizationRules, SynonymRule

_logger = logging.getLogger("consol_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the packaged defaults.yaml.

    Returns:
        A validated, frozen ``EngineConfig``.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config, checksum = load_engine_config(source)

    _logger.info(
        "CONSOL_CONFIG_TRACE",
        extra={
            "trace_type": "CONSOL_CONFIG_TRACE",
            "config_path": str(source),
            "checksum": checksum,
            "similarity_threshold": config.duplicate_detection.threshold,
            "synonym_count": len(config.duplicate_detection.normalization.synonyms),
            "intercompany_pattern_count": len(config.intercompany.description_patterns),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DuplicateDetectionConfig",
    "EngineConfig",
    "IntercompanyConfig",
    "NormalizationRules",
    "SynonymRule",
    "TrialBalanceConfig",
    "compute_checksum",
    "get_active_config",
    "load_engine_config",
    "load_yaml_file",
]
