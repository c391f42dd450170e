"""
Settings Loader (``billing_config.loader``).

Loads a YAML settings file and parses it into ``BillingSettings``.
Callers should go through ``billing_config.get_active_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or invalid value  -> ``InvalidBillingConfigError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingSettings
from billing_kernel.exceptions import InvalidBillingConfigError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_settings(data: dict[str, Any]) -> BillingSettings:
    """
    Build ``BillingSettings`` from a mapping.

    The mapping may hold the fields at top level or under a ``billing`` key.
    Missing fields fall back to their defaults.

    Raises:
        InvalidBillingConfigError: on unknown keys or invalid values.
    """
    if not isinstance(data, dict):
        raise InvalidBillingConfigError("<root>", data, "must be a mapping")

    section = data.get("billing", data)
    if not isinstance(section, dict):
        raise InvalidBillingConfigError("billing", section, "must be a mapping")

    unknown = sorted(set(section) - BillingSettings.field_names())
    if unknown:
        raise InvalidBillingConfigError(unknown[0], section[unknown[0]], "unknown setting")

    return BillingSettings(**section)


def load_settings(path: Path) -> BillingSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))
