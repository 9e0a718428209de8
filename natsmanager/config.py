"""Environment configuration of the NATS manager."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


class ConfigError(Exception):
    """Raised when the environment lacks a required setting."""


@dataclass(frozen=True)
class Config:
    """Settings read from the environment."""

    log_level: str
    nats_chart_dir: str
    nats_cr_name: str
    nats_cr_namespace: str


_REQUIRED = (
    ("log_level", "LOG_LEVEL"),
    ("nats_chart_dir", "NATS_CHART_DIR"),
    ("nats_cr_name", "NATS_CR_NAME"),
    ("nats_cr_namespace", "NATS_CR_NAMESPACE"),
)


def get_config(environ: Mapping[str, str] | None = None) -> Config:
    """Build a :class:`Config` from ``environ`` (the process environment by default)."""
    env = os.environ if environ is None else environ
    values = {}
    for field_name, key in _REQUIRED:
        if key not in env:
            raise ConfigError(f"required key {key} missing value")
        values[field_name] = env[key]
    return Config(**values)