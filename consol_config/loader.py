"""
YAML loader for consolidation engine configuration.

Responsibility
--------------
Read a YAML document from disk with ``yaml.safe_load``, compute a stable
checksum of it, and hand the parsed dict to ``EngineConfig.from_dict``.

Failure modes
-------------
* Missing file      -> ``FileNotFoundError`` propagates.
* Malformed YAML    -> ``yaml.YAMLError`` propagates.
* Invalid values    -> ``ValueError`` from the schema dataclasses.

``compute_checksum`` lets an auditor confirm which configuration governed
a consolidation run.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from consol_config.schema import EngineConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_engine_config(path: Path | str) -> tuple[EngineConfig, str]:
    """Parse ``path`` into an ``EngineConfig``; also return its checksum."""
    data = load_yaml_file(Path(path))
    return EngineConfig.from_dict(data), compute_checksum(data)
