"""Result types returned by the remote key-value store."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional


class Outcome(Enum):
    """Possible outcomes of a read against the remote store."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"
    DECODE_ERROR = "decode_error"


@dataclass
class FetchResult:
    """Result of a point read, key listing or full dump."""
    outcome: Outcome
    key: Optional[str] = None
    value: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.FOUND

    @classmethod
    def found(cls, key: Optional[str], value: Any, status_code: int = 200) -> "FetchResult":
        return cls(Outcome.FOUND, key=key, value=value, status_code=status_code)

    @classmethod
    def not_found(cls, key: Optional[str]) -> "FetchResult":
        return cls(Outcome.NOT_FOUND, key=key, status_code=404)

    @classmethod
    def transport_error(
        cls, key: Optional[str], error: str, status_code: Optional[int] = None
    ) -> "FetchResult":
        return cls(Outcome.TRANSPORT_ERROR, key=key, error=error, status_code=status_code)

    @classmethod
    def decode_error(cls, key: Optional[str], error: str) -> "FetchResult":
        return cls(Outcome.DECODE_ERROR, key=key, error=error)


class WriteFailure(Exception):
    """Raised when a write is rejected by, or never reaches, the remote store."""

    def __init__(self, result: "WriteResult"):
        super().__init__(f"Write to {result.key!r} failed: {result.message}")
        self.result = result


@dataclass
class WriteResult:
    """Result of a PUT against the remote store."""
    success: bool
    key: str
    message: str = ""
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    def raise_for_failure(self) -> "WriteResult":
        if not self.success:
            raise WriteFailure(self)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
