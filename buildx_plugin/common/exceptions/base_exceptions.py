from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ErrorCode(str, Enum):
    UNKNOWN = "E0000"

    BUILD_FAILED = "E1000"
    BUILD_CONFIGURATION_ERROR = "E1001"
    BUILD_COMMAND_FAILED = "E1002"

    BUILDER_ERROR = "E2000"
    BUILDER_CREATE_FAILED = "E2001"
    BUILDER_BOOTSTRAP_FAILED = "E2002"

    DAEMON_ERROR = "E3000"
    DAEMON_NOT_READY = "E3001"

    ARTIFACT_ERROR = "E4000"
    METADATA_PARSE_ERROR = "E4001"
    ARTIFACT_WRITE_ERROR = "E4002"

    AUTHENTICATION_ERROR = "E6000"


class PluginBaseException(Exception):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code}, "
            f"details={self.details})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }


class RetryableException(PluginBaseException):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        super().__init__(message, error_code, details, cause)
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.retry_count = 0

    def should_retry(self) -> bool:
        return self.retry_count < self.max_retries

    def increment_retry(self) -> None:
        self.retry_count += 1


class NonRetryableException(PluginBaseException):
    pass


class AuthenticationException(NonRetryableException):
    def __init__(
        self,
        message: str = "Authentication failed",
        registry: Optional[str] = None,
        output: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if registry:
            details["registry"] = registry
        if output:
            details["output"] = output[:1000]
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTHENTICATION_ERROR,
            details=details,
            cause=cause,
        )
        self.registry = registry
        self.output = output
