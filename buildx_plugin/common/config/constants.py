from enum import Enum
from typing import Final


class LayerState(str, Enum):
    DONE = "DONE"
    CACHED = "CACHED"
    ERRORED = "ERRORED"
    CANCELED = "CANCELED"


class BuilderDriver(str, Enum):
    DOCKER = "docker"
    DOCKER_CONTAINER = "docker-container"
    REMOTE = "remote"


class RegistryType(str, Enum):
    DOCKER = "Docker"
    ECR = "ECR"
    GCR = "GCR"
    ACR = "ACR"
    GAR = "GAR"


DOCKER_EXE: Final[str] = "/usr/local/bin/docker"
DOCKERD_EXE: Final[str] = "/usr/local/bin/dockerd"
DOCKER_HOME: Final[str] = "/root/.docker/"
DOCKER_SOCKET_HOST: Final[str] = "--host=unix:///var/run/docker.sock"
SECCOMP_PROFILE_PATH: Final[str] = "/etc/docker/default.json"

DEFAULT_DOCKERFILE: Final[str] = "Dockerfile"
DEFAULT_CONTEXT: Final[str] = "."
DEFAULT_TAG: Final[str] = "latest"
DEFAULT_STORAGE_PATH: Final[str] = "/var/lib/docker"
DEFAULT_BUILDKIT_ASSETS_DIR: Final[str] = "/kaniko/buildkit"

LABEL_PREFIX: Final[str] = "org.opencontainers.image"

ACCESS_TOKEN_USERNAME: Final[str] = "oauth2accesstoken"
LOGIN_SUCCEEDED_MARKER: Final[str] = "Login Succeeded"
INSECURE_PASSWORD_WARNING: Final[str] = (
    "WARNING! Using --password via the CLI is insecure. Use --password-stdin."
)

AWS_PLACEHOLDER: Final[str] = "harness_placeholder_aws_creds"
GCP_PLACEHOLDER: Final[str] = "harness_placeholder_gcp_creds"
ACCESS_KEY_ID_KEY: Final[str] = "access_key_id"
SECRET_ACCESS_KEY_KEY: Final[str] = "secret_access_key"
GCP_JSON_KEY_KEY: Final[str] = "gcp_json_key"
USE_PATH_STYLE_KEY: Final[str] = "use_path_style"

PROXY_KEYS: Final[tuple] = ("http_proxy", "https_proxy", "no_proxy")

METRICS_CHANNEL_CAPACITY: Final[int] = 100
DAEMON_READY_ATTEMPTS: Final[int] = 15
DAEMON_READY_INTERVAL_SECONDS: Final[float] = 1.0

BUILDKIT_VERSION_FILE: Final[str] = "version.json"
BUILDKIT_TARBALL_FILE: Final[str] = "buildkit.tar"

METADATA_DIGEST_KEY: Final[str] = "containerimage.digest"
DOCKER_ARTIFACT_KIND: Final[str] = "docker/v1"
