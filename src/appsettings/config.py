"""Configuration loader for the settings client."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from jsonschema import Draft7Validator

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "consul_url": {"type": "string", "minLength": 1},
        "token": {"type": ["string", "null"]},
        "timeout_sec": {"type": "number", "exclusiveMinimum": 0},
        "cache": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "ttl_ms": {"type": "integer", "minimum": 0},
            },
        },
        "circuit_breaker": {
            "type": "object",
            "properties": {
                "fails": {"type": "integer", "minimum": 0},
                "ttl_sec": {"type": "number", "minimum": 0},
            },
        },
    },
}

_validator = Draft7Validator(CONFIG_SCHEMA)


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool
    ttl_ms: int


@dataclass(frozen=True)
class CircuitBreakerConfig:
    fails: int
    ttl_sec: float


@dataclass(frozen=True)
class SettingsConfig:
    consul_url: str
    token: Optional[str]
    timeout_sec: float
    cache: CacheConfig
    circuit_breaker: CircuitBreakerConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingsConfig":
        cache_data = data.get("cache", {})
        cb_data = data.get("circuit_breaker", {})
        return cls(
            consul_url=data.get("consul_url", "http://127.0.0.1:8500"),
            token=data.get("token"),
            timeout_sec=float(data.get("timeout_sec", 10)),
            cache=CacheConfig(
                enabled=bool(cache_data.get("enabled", True)),
                ttl_ms=int(cache_data.get("ttl_ms", 2000)),
            ),
            circuit_breaker=CircuitBreakerConfig(
                fails=int(cb_data.get("fails", 3)),
                ttl_sec=float(cb_data.get("ttl_sec", 30)),
            ),
        )


ENV_MAP = {
    "consul_url": "CONSUL_HTTP_ADDR",
    "token": "CONSUL_HTTP_TOKEN",
    "timeout_sec": "CONSUL_TIMEOUT_SEC",
    "cache.enabled": "SETTINGS_CACHE_ENABLED",
    "cache.ttl_ms": "SETTINGS_CACHE_TTL_MS",
    "circuit_breaker.fails": "CONSUL_CB_FAILS",
    "circuit_breaker.ttl_sec": "CONSUL_CB_TTL_SEC",
}


def validate_config(data: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"settings config validation failed: {messages}")


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _parse_env(last: str, value: str) -> Any:
    if last == "enabled":
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if last in {"ttl_ms", "fails"}:
        return int(value)
    if last in {"timeout_sec", "ttl_sec"}:
        return float(value)
    return value


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        target[last] = _parse_env(last, os.environ[env_name])

    return merged


def load_config(config_path: str | Path = "config/settings.defaults.yml") -> SettingsConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    validate_config(data)
    return SettingsConfig.from_dict(data)
