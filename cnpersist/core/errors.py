from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class CnPersistError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": dict(self.context or {}),
        }


class ConfigurationError(CnPersistError):
    """A store or field cannot be persisted as configured. Aborts setup for that store/field only."""

    def __init__(self, user_message: str = "Persist configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class StorageAccessError(CnPersistError):
    def __init__(self, user_message: str = "Storage access failed.", **ctx: Any):
        super().__init__("storage_access_error", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class BufferStateError(CnPersistError):
    def __init__(self, user_message: str = "Persist buffer is in an invalid state.", **ctx: Any):
        super().__init__("buffer_state_error", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)
