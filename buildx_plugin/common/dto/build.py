from enum import Enum
from typing import Optional, List, Dict

from pydantic import Field, SecretStr, field_validator

from buildx_plugin.common.dto.base import FrozenDTO, secret_value
from buildx_plugin.common.config.constants import (
    BuilderDriver,
    RegistryType,
    DEFAULT_BUILDKIT_ASSETS_DIR,
    DEFAULT_CONTEXT,
    DEFAULT_DOCKERFILE,
    DEFAULT_STORAGE_PATH,
    DEFAULT_TAG,
    DOCKER_EXE,
    DOCKER_HOME,
    DAEMON_READY_ATTEMPTS,
    DAEMON_READY_INTERVAL_SECONDS,
)


class LoginMode(str, Enum):
    PASSWORD = "password"
    ACCESS_TOKEN = "access_token"
    GUEST = "guest"


def _validate_cache_descriptors(entries: List[str]) -> List[str]:
    for entry in entries:
        for pair in entry.split(","):
            key, sep, _ = pair.partition("=")
            if not sep or not key.strip():
                raise ValueError(
                    f"Invalid cache descriptor {entry!r}: expected key=value[,key=value...]"
                )
    return entries


class BuildConfig(FrozenDTO):
    remote: str = Field(default="", description="Git remote URL")
    name: str = Field(default="", description="Commit SHA, used as the local image name")
    dockerfile: str = Field(default=DEFAULT_DOCKERFILE)
    context: str = Field(default=DEFAULT_CONTEXT)
    tags: List[str] = Field(default_factory=lambda: [DEFAULT_TAG], min_length=1)
    args: List[str] = Field(default_factory=list)
    args_env: List[str] = Field(default_factory=list)
    args_new: List[str] = Field(default_factory=list)
    multiple_build_args: bool = Field(
        default=False,
        description="Use args_new instead of the legacy args list",
    )
    target: str = Field(default="")
    squash: bool = Field(default=False)
    pull: bool = Field(default=True)
    cache_from: List[str] = Field(default_factory=list)
    cache_to: List[str] = Field(default_factory=list)
    compress: bool = Field(default=False)
    repo: str = Field(default="")
    label_schema: List[str] = Field(default_factory=list)
    auto_label: bool = Field(default=True)
    labels: List[str] = Field(default_factory=list)
    link: str = Field(default="")
    no_cache: bool = Field(default=False)
    secret: str = Field(default="")
    secret_envs: List[str] = Field(default_factory=list)
    secret_files: List[str] = Field(default_factory=list)
    add_host: List[str] = Field(default_factory=list)
    quiet: bool = Field(default=False)
    platform: str = Field(default="")
    ssh_agent_key: Optional[SecretStr] = Field(default=None)
    ssh_key_path: str = Field(default="")
    buildx_load: bool = Field(default=False)
    s3_access_key: Optional[SecretStr] = Field(default=None)
    s3_secret_key: Optional[SecretStr] = Field(default=None)
    gcp_json_key: Optional[SecretStr] = Field(default=None)
    s3_path_style: bool = Field(default=False)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        tags = [tag for tag in v if tag]
        if not tags:
            raise ValueError("At least one tag is required")
        return tags

    @field_validator("cache_from", "cache_to")
    @classmethod
    def validate_cache_descriptors(cls, v: List[str]) -> List[str]:
        return _validate_cache_descriptors(v)

    def active_build_args(self) -> List[str]:
        return list(self.args_new if self.multiple_build_args else self.args)


class AuthConfig(FrozenDTO):
    registry: str = Field(default="")
    username: str = Field(default="")
    password: Optional[SecretStr] = Field(default=None)
    email: str = Field(default="")
    config: Optional[SecretStr] = Field(
        default=None,
        description="Whole docker config.json content",
    )
    access_token: Optional[SecretStr] = Field(default=None)

    @property
    def has_password(self) -> bool:
        return bool(secret_value(self.password))

    @property
    def has_config(self) -> bool:
        return bool(secret_value(self.config))

    @property
    def has_access_token(self) -> bool:
        return bool(secret_value(self.access_token))

    @property
    def login_mode(self) -> LoginMode:
        if self.has_password:
            return LoginMode.PASSWORD
        if self.has_access_token:
            return LoginMode.ACCESS_TOKEN
        return LoginMode.GUEST


class BuilderConfig(FrozenDTO):
    name: str = Field(default="")
    driver: str = Field(default="")
    driver_opts: List[str] = Field(default_factory=list)
    driver_opts_new: List[str] = Field(default_factory=list)
    remote_conn: str = Field(default="")
    daemon_config: str = Field(default="")
    use_loaded_buildkit: bool = Field(default=True)
    assets_dir: str = Field(default=DEFAULT_BUILDKIT_ASSETS_DIR)
    buildkit_version: str = Field(default="")
    driver_http_proxy: str = Field(default="")
    driver_https_proxy: str = Field(default="")
    inherit_env: Dict[str, str] = Field(default_factory=dict)
    tls_handshake_timeout: str = Field(default="")
    response_header_timeout: str = Field(default="")

    @property
    def is_default_driver(self) -> bool:
        return self.driver in ("", BuilderDriver.DOCKER.value)

    @property
    def is_remote(self) -> bool:
        return self.driver == BuilderDriver.REMOTE.value


class DaemonConfig(FrozenDTO):
    registry: str = Field(default="")
    mirror: str = Field(default="")
    insecure: bool = Field(default=False)
    storage_driver: str = Field(default="")
    storage_path: str = Field(default=DEFAULT_STORAGE_PATH)
    disabled: bool = Field(default=False)
    debug: bool = Field(default=False)
    bip: str = Field(default="")
    dns: List[str] = Field(default_factory=list)
    dns_search: List[str] = Field(default_factory=list)
    mtu: str = Field(default="")
    ipv6: bool = Field(default=False)
    registry_type: RegistryType = Field(default=RegistryType.DOCKER)
    artifact_registry: str = Field(default="")


class PipelineConfig(FrozenDTO):
    build: BuildConfig = Field(default_factory=BuildConfig)
    login: AuthConfig = Field(default_factory=AuthConfig)
    builder: BuilderConfig = Field(default_factory=BuilderConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    dry_run: bool = Field(default=False)
    cleanup: bool = Field(default=True)
    metadata_file: str = Field(default="")
    artifact_file: str = Field(default="")
    cache_metrics_file: str = Field(default="")
    base_image_registry: str = Field(default="")
    base_image_username: str = Field(default="")
    base_image_password: Optional[SecretStr] = Field(default=None)
    docker_exe: str = Field(default=DOCKER_EXE)
    docker_home: str = Field(default=DOCKER_HOME)
    ssh_home: str = Field(default="")
    environment: Dict[str, str] = Field(
        default_factory=dict,
        description="Environment snapshot captured once at the configuration boundary",
    )
    daemon_ready_attempts: int = Field(default=DAEMON_READY_ATTEMPTS, ge=1)
    daemon_ready_interval_seconds: float = Field(default=DAEMON_READY_INTERVAL_SECONDS, ge=0.0)

    def base_image_login(self) -> Optional[AuthConfig]:
        if not self.base_image_registry:
            return None
        return AuthConfig(
            registry=self.base_image_registry,
            username=self.base_image_username,
            password=self.base_image_password,
        )
