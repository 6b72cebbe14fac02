from buildx_plugin.common.dto.base import FrozenDTO, secret_value
from buildx_plugin.common.dto.build import (
    LoginMode,
    BuildConfig,
    AuthConfig,
    BuilderConfig,
    DaemonConfig,
    PipelineConfig,
)
from buildx_plugin.common.dto.metrics import (
    LayerStatus,
    Layer,
    CacheMetrics,
)
from buildx_plugin.common.dto.artifact import (
    ArtifactImage,
    ArtifactData,
    DockerArtifact,
)

__all__ = [
    "FrozenDTO",
    "secret_value",
    "LoginMode",
    "BuildConfig",
    "AuthConfig",
    "BuilderConfig",
    "DaemonConfig",
    "PipelineConfig",
    "LayerStatus",
    "Layer",
    "CacheMetrics",
    "ArtifactImage",
    "ArtifactData",
    "DockerArtifact",
]
