"""
Typed application settings over a cached Consul K/V store

Provides:
- AppSettings — get / set / exists / list-keys / get-all facade
- create_settings — wires client, cache store and cache layer from config
- load_config — YAML defaults with environment overrides
"""

from .config import CacheConfig, CircuitBreakerConfig, SettingsConfig, load_config
from .settings import AppSettings, create_settings

__all__ = [
    'AppSettings', 'create_settings',
    'SettingsConfig', 'CacheConfig', 'CircuitBreakerConfig', 'load_config',
]
