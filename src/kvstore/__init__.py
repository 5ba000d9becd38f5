"""
Remote key-value store access

Provides:
- RemoteStoreClient — the protocol the settings cache consumes
- ConsulKVClient — Consul K/V implementation over HTTP
- FetchResult / WriteResult — explicit read and write outcomes
- CircuitBreaker — short-circuits calls while Consul is down
"""

from .circuit_breaker import CircuitBreaker
from .client import ConsulKVClient, RemoteStoreClient
from .codec import ValueDecodeError
from .results import FetchResult, Outcome, WriteFailure, WriteResult

__all__ = [
    'ConsulKVClient', 'RemoteStoreClient', 'CircuitBreaker',
    'FetchResult', 'Outcome', 'WriteResult', 'WriteFailure',
    'ValueDecodeError',
]
