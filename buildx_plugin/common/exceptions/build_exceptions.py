from typing import Optional, Dict, Any, List, Sequence

from buildx_plugin.common.exceptions.base_exceptions import (
    PluginBaseException,
    RetryableException,
    NonRetryableException,
    ErrorCode,
)


class BuildException(PluginBaseException):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.BUILD_FAILED,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if stage:
            details["stage"] = stage
        super().__init__(message, error_code, details, cause)
        self.stage = stage


class CommandFailedException(BuildException):
    def __init__(
        self,
        message: str,
        args: Optional[Sequence[str]] = None,
        exit_code: Optional[int] = None,
        output: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if args:
            details["command"] = " ".join(args[1:3])
        if exit_code is not None:
            details["exit_code"] = exit_code
        if output:
            details["output"] = output[-1000:]
        super().__init__(
            message=message,
            error_code=ErrorCode.BUILD_COMMAND_FAILED,
            stage=stage,
            details=details,
            cause=cause,
        )
        self.command_args: List[str] = list(args or [])
        self.exit_code = exit_code
        self.output = output


class ConfigurationError(BuildException):
    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if field_name:
            details["field_name"] = field_name
        super().__init__(
            message=message,
            error_code=ErrorCode.BUILD_CONFIGURATION_ERROR,
            stage="configuration",
            details=details,
            cause=cause,
        )
        self.field_name = field_name


class BuilderProvisioningException(NonRetryableException):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.BUILDER_ERROR,
        builder_name: Optional[str] = None,
        driver: Optional[str] = None,
        primary_error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if builder_name:
            details["builder_name"] = builder_name
        if driver:
            details["driver"] = driver
        if primary_error:
            details["primary_error"] = primary_error[:500]
        super().__init__(message, error_code, details, cause)
        self.builder_name = builder_name
        self.driver = driver
        self.primary_error = primary_error


class DaemonNotReadyException(RetryableException):
    def __init__(
        self,
        message: str = "Docker daemon is not reachable",
        attempt: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if attempt is not None:
            details["attempt"] = attempt
        super().__init__(
            message=message,
            error_code=ErrorCode.DAEMON_NOT_READY,
            details=details,
        )


class MetadataParseError(NonRetryableException):
    def __init__(
        self,
        message: str,
        metadata_file: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if metadata_file:
            details["metadata_file"] = metadata_file
        super().__init__(
            message=message,
            error_code=ErrorCode.METADATA_PARSE_ERROR,
            details=details,
            cause=cause,
        )
        self.metadata_file = metadata_file


class ArtifactWriteError(NonRetryableException):
    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if path:
            details["path"] = path
        super().__init__(
            message=message,
            error_code=ErrorCode.ARTIFACT_WRITE_ERROR,
            details=details,
            cause=cause,
        )
        self.path = path
