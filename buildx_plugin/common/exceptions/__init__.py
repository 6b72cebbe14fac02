from buildx_plugin.common.exceptions.base_exceptions import (
    PluginBaseException,
    ErrorCode,
    RetryableException,
    NonRetryableException,
    AuthenticationException,
)
from buildx_plugin.common.exceptions.build_exceptions import (
    BuildException,
    CommandFailedException,
    ConfigurationError,
    BuilderProvisioningException,
    DaemonNotReadyException,
    MetadataParseError,
    ArtifactWriteError,
)

__all__ = [
    "PluginBaseException",
    "ErrorCode",
    "RetryableException",
    "NonRetryableException",
    "AuthenticationException",
    "BuildException",
    "CommandFailedException",
    "ConfigurationError",
    "BuilderProvisioningException",
    "DaemonNotReadyException",
    "MetadataParseError",
    "ArtifactWriteError",
]
