import json
import os
from functools import lru_cache
from typing import Optional, List, Dict, Mapping

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, SecretStr, field_validator

from buildx_plugin.common.config.constants import (
    PROXY_KEYS,
    RegistryType,
    DEFAULT_BUILDKIT_ASSETS_DIR,
    DEFAULT_CONTEXT,
    DEFAULT_DOCKERFILE,
    DEFAULT_STORAGE_PATH,
    DEFAULT_TAG,
)
from buildx_plugin.common.dto.build import (
    AuthConfig,
    BuildConfig,
    BuilderConfig,
    DaemonConfig,
    PipelineConfig,
)


def _env(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def split_list(value: str, separator: str = ",") -> List[str]:
    value = (value or "").strip()
    if not value:
        return []
    if value.startswith("["):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return [str(item).strip() for item in decoded if str(item).strip()]
    return [item.strip() for item in value.split(separator) if item.strip()]


def split_descriptors(value: str) -> List[str]:
    # descriptors carry their own commas, entries are ';' separated
    return split_list(value, separator=";")


def capture_environment(
    environ: Mapping[str, str],
    names: List[str],
) -> Dict[str, str]:
    captured: Dict[str, str] = {}
    for name in names:
        for key in (name, name.lower(), name.upper()):
            if key in environ and environ[key]:
                captured[key] = environ[key]
    return captured


class PluginSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", validation_alias=_env("PLUGIN_LOG_LEVEL"))
    log_json: bool = Field(default=False, validation_alias=_env("PLUGIN_LOG_JSON"))

    dry_run: bool = Field(default=False, validation_alias=_env("PLUGIN_DRY_RUN"))
    purge: bool = Field(default=True, validation_alias=_env("PLUGIN_PURGE"))
    remote_url: str = Field(default="", validation_alias=_env("DRONE_REMOTE_URL"))
    commit_sha: str = Field(default="", validation_alias=_env("DRONE_COMMIT_SHA"))

    daemon_mirror: str = Field(default="", validation_alias=_env("PLUGIN_MIRROR", "DOCKER_PLUGIN_MIRROR"))
    daemon_storage_driver: str = Field(default="", validation_alias=_env("PLUGIN_STORAGE_DRIVER"))
    daemon_storage_path: str = Field(default=DEFAULT_STORAGE_PATH, validation_alias=_env("PLUGIN_STORAGE_PATH"))
    daemon_bip: str = Field(default="", validation_alias=_env("PLUGIN_BIP"))
    daemon_mtu: str = Field(default="", validation_alias=_env("PLUGIN_MTU"))
    daemon_dns: str = Field(default="", validation_alias=_env("PLUGIN_CUSTOM_DNS"))
    daemon_dns_search: str = Field(default="", validation_alias=_env("PLUGIN_CUSTOM_DNS_SEARCH"))
    daemon_insecure: bool = Field(default=False, validation_alias=_env("PLUGIN_INSECURE"))
    daemon_ipv6: bool = Field(default=False, validation_alias=_env("PLUGIN_IPV6"))
    daemon_debug: bool = Field(default=False, validation_alias=_env("PLUGIN_DEBUG", "DOCKER_LAUNCH_DEBUG"))
    daemon_off: bool = Field(default=False, validation_alias=_env("PLUGIN_DAEMON_OFF"))

    artifact_registry: str = Field(
        default="",
        validation_alias=_env("ARTIFACT_REGISTRY", "PLUGIN_REGISTRY", "DOCKER_REGISTRY"),
    )
    registry_type: RegistryType = Field(default=RegistryType.DOCKER, validation_alias=_env("PLUGIN_REGISTRY_TYPE"))

    dockerfile: str = Field(default=DEFAULT_DOCKERFILE, validation_alias=_env("PLUGIN_DOCKERFILE"))
    context: str = Field(default=DEFAULT_CONTEXT, validation_alias=_env("PLUGIN_CONTEXT"))
    tags: str = Field(default=DEFAULT_TAG, validation_alias=_env("PLUGIN_TAG", "PLUGIN_TAGS"))
    build_args: str = Field(default="", validation_alias=_env("PLUGIN_BUILD_ARGS"))
    build_args_from_env: str = Field(default="", validation_alias=_env("PLUGIN_BUILD_ARGS_FROM_ENV"))
    build_args_new: str = Field(default="", validation_alias=_env("PLUGIN_BUILD_ARGS_NEW"))
    multiple_build_args: bool = Field(default=False, validation_alias=_env("PLUGIN_MULTIPLE_BUILD_ARGS"))
    quiet: bool = Field(default=False, validation_alias=_env("PLUGIN_QUIET"))
    target: str = Field(default="", validation_alias=_env("PLUGIN_TARGET"))
    cache_from: str = Field(default="", validation_alias=_env("PLUGIN_CACHE_FROM"))
    cache_to: str = Field(default="", validation_alias=_env("PLUGIN_CACHE_TO"))
    squash: bool = Field(default=False, validation_alias=_env("PLUGIN_SQUASH"))
    pull_image: bool = Field(default=True, validation_alias=_env("PLUGIN_PULL_IMAGE"))
    compress: bool = Field(default=False, validation_alias=_env("PLUGIN_COMPRESS"))
    repo: str = Field(default="", validation_alias=_env("PLUGIN_REPO"))
    custom_labels: str = Field(default="", validation_alias=_env("PLUGIN_CUSTOM_LABELS"))
    label_schema: str = Field(default="", validation_alias=_env("PLUGIN_LABEL_SCHEMA"))
    auto_label: bool = Field(default=True, validation_alias=_env("PLUGIN_AUTO_LABEL"))
    link: str = Field(default="", validation_alias=_env("PLUGIN_REPO_LINK", "DRONE_REPO_LINK"))
    no_cache: bool = Field(default=False, validation_alias=_env("PLUGIN_NO_CACHE"))
    add_host: str = Field(default="", validation_alias=_env("PLUGIN_ADD_HOST"))
    secret: str = Field(default="", validation_alias=_env("PLUGIN_SECRET"))
    secrets_from_env: str = Field(default="", validation_alias=_env("PLUGIN_SECRETS_FROM_ENV"))
    secrets_from_file: str = Field(default="", validation_alias=_env("PLUGIN_SECRETS_FROM_FILE"))
    platform: str = Field(default="", validation_alias=_env("PLUGIN_PLATFORM"))
    ssh_agent_key: Optional[SecretStr] = Field(default=None, validation_alias=_env("PLUGIN_SSH_AGENT_KEY"))
    buildx_load: bool = Field(default=False, validation_alias=_env("PLUGIN_BUILDX_LOAD"))
    path_style: bool = Field(default=False, validation_alias=_env("PLUGIN_PATH_STYLE"))
    s3_access_key: Optional[SecretStr] = Field(
        default=None, validation_alias=_env("PLUGIN_HARNESS_SELF_HOSTED_S3_ACCESS_KEY")
    )
    s3_secret_key: Optional[SecretStr] = Field(
        default=None, validation_alias=_env("PLUGIN_HARNESS_SELF_HOSTED_S3_SECRET_KEY")
    )
    gcp_json_key: Optional[SecretStr] = Field(
        default=None, validation_alias=_env("PLUGIN_HARNESS_SELF_HOSTED_GCP_JSON_KEY")
    )

    registry: str = Field(default="", validation_alias=_env("PLUGIN_REGISTRY", "DOCKER_REGISTRY"))
    username: str = Field(default="", validation_alias=_env("PLUGIN_USERNAME", "DOCKER_USERNAME"))
    password: Optional[SecretStr] = Field(default=None, validation_alias=_env("PLUGIN_PASSWORD", "DOCKER_PASSWORD"))
    email: str = Field(default="", validation_alias=_env("PLUGIN_EMAIL", "DOCKER_EMAIL"))
    docker_config: Optional[SecretStr] = Field(
        default=None, validation_alias=_env("PLUGIN_CONFIG", "DOCKER_PLUGIN_CONFIG")
    )
    access_token: Optional[SecretStr] = Field(default=None, validation_alias=_env("ACCESS_TOKEN"))
    base_image_registry: str = Field(
        default="", validation_alias=_env("PLUGIN_DOCKER_REGISTRY", "PLUGIN_BASE_IMAGE_REGISTRY")
    )
    base_image_username: str = Field(
        default="", validation_alias=_env("PLUGIN_DOCKER_USERNAME", "PLUGIN_BASE_IMAGE_USERNAME")
    )
    base_image_password: Optional[SecretStr] = Field(
        default=None, validation_alias=_env("PLUGIN_DOCKER_PASSWORD", "PLUGIN_BASE_IMAGE_PASSWORD")
    )

    builder_name: str = Field(default="", validation_alias=_env("PLUGIN_BUILDER_NAME"))
    builder_daemon_config: str = Field(default="", validation_alias=_env("PLUGIN_BUILDER_CONFIG"))
    builder_driver: str = Field(default="", validation_alias=_env("PLUGIN_BUILDER_DRIVER"))
    builder_driver_opts: str = Field(default="", validation_alias=_env("PLUGIN_BUILDER_DRIVER_OPTS"))
    builder_driver_opts_new: str = Field(default="", validation_alias=_env("PLUGIN_BUILDER_DRIVER_OPTS_NEW"))
    builder_remote_conn: str = Field(default="", validation_alias=_env("PLUGIN_BUILDER_REMOTE_CONN"))
    builder_inherit_auth: bool = Field(default=False, validation_alias=_env("PLUGIN_BUILDER_INHERIT_AUTH"))
    use_loaded_buildkit: bool = Field(default=True, validation_alias=_env("PLUGIN_USE_LOADED_BUILDKIT"))
    buildkit_assets_dir: str = Field(
        default=DEFAULT_BUILDKIT_ASSETS_DIR, validation_alias=_env("PLUGIN_BUILDKIT_ASSETS_DIR")
    )
    buildkit_version: str = Field(default="", validation_alias=_env("PLUGIN_BUILDKIT_VERSION"))
    buildkit_tls_handshake_timeout: str = Field(
        default="", validation_alias=_env("PLUGIN_BUILDKIT_TLS_HANDSHAKE_TIMEOUT")
    )
    buildkit_response_header_timeout: str = Field(
        default="", validation_alias=_env("PLUGIN_BUILDKIT_RESPONSE_HEADER_TIMEOUT")
    )
    driver_http_proxy: str = Field(default="", validation_alias=_env("HARNESS_HTTP_PROXY"))
    driver_https_proxy: str = Field(default="", validation_alias=_env("HARNESS_HTTPS_PROXY"))

    metadata_file: str = Field(default="", validation_alias=_env("PLUGIN_METADATA_FILE"))
    artifact_file: str = Field(default="", validation_alias=_env("PLUGIN_ARTIFACT_FILE"))
    cache_metrics_file: str = Field(default="", validation_alias=_env("PLUGIN_CACHE_METRICS_FILE"))

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("registry_type", mode="before")
    @classmethod
    def default_registry_type(cls, v):
        return v or RegistryType.DOCKER

    def to_build_config(self) -> BuildConfig:
        return BuildConfig(
            remote=self.remote_url,
            name=self.commit_sha,
            dockerfile=self.dockerfile,
            context=self.context,
            tags=split_list(self.tags) or [DEFAULT_TAG],
            args=split_list(self.build_args),
            args_env=split_list(self.build_args_from_env),
            args_new=split_descriptors(self.build_args_new),
            multiple_build_args=self.multiple_build_args,
            target=self.target,
            squash=self.squash,
            pull=self.pull_image,
            cache_from=split_descriptors(self.cache_from),
            cache_to=split_descriptors(self.cache_to),
            compress=self.compress,
            repo=self.repo,
            label_schema=split_list(self.label_schema),
            auto_label=self.auto_label,
            labels=split_list(self.custom_labels),
            link=self.link,
            no_cache=self.no_cache,
            secret=self.secret,
            secret_envs=split_list(self.secrets_from_env),
            secret_files=split_list(self.secrets_from_file),
            add_host=split_list(self.add_host),
            quiet=self.quiet,
            platform=self.platform,
            ssh_agent_key=self.ssh_agent_key,
            buildx_load=self.buildx_load,
            s3_access_key=self.s3_access_key,
            s3_secret_key=self.s3_secret_key,
            gcp_json_key=self.gcp_json_key,
            s3_path_style=self.path_style,
        )

    def to_auth_config(self) -> AuthConfig:
        return AuthConfig(
            registry=self.registry,
            username=self.username,
            password=self.password,
            email=self.email,
            config=self.docker_config,
            access_token=self.access_token,
        )

    def to_builder_config(self, environ: Mapping[str, str]) -> BuilderConfig:
        inherit_env: Dict[str, str] = {}
        if self.builder_inherit_auth:
            inherit_env = {k: v for k, v in environ.items() if k.startswith("AWS_")}
        return BuilderConfig(
            name=self.builder_name,
            driver=self.builder_driver,
            driver_opts=split_descriptors(self.builder_driver_opts),
            driver_opts_new=split_descriptors(self.builder_driver_opts_new),
            remote_conn=self.builder_remote_conn,
            daemon_config=self.builder_daemon_config,
            use_loaded_buildkit=self.use_loaded_buildkit,
            assets_dir=self.buildkit_assets_dir,
            buildkit_version=self.buildkit_version,
            driver_http_proxy=self.driver_http_proxy,
            driver_https_proxy=self.driver_https_proxy,
            inherit_env=inherit_env,
            tls_handshake_timeout=self.buildkit_tls_handshake_timeout,
            response_header_timeout=self.buildkit_response_header_timeout,
        )

    def to_daemon_config(self) -> DaemonConfig:
        return DaemonConfig(
            registry=self.registry,
            mirror=self.daemon_mirror,
            insecure=self.daemon_insecure,
            storage_driver=self.daemon_storage_driver,
            storage_path=self.daemon_storage_path,
            disabled=self.daemon_off,
            debug=self.daemon_debug,
            bip=self.daemon_bip,
            dns=split_list(self.daemon_dns),
            dns_search=split_list(self.daemon_dns_search),
            mtu=self.daemon_mtu,
            ipv6=self.daemon_ipv6,
            registry_type=self.registry_type,
            artifact_registry=self.artifact_registry,
        )

    def to_pipeline_config(
        self,
        environ: Optional[Mapping[str, str]] = None,
    ) -> PipelineConfig:
        if environ is None:
            environ = os.environ

        build = self.to_build_config()
        captured = capture_environment(environ, list(PROXY_KEYS) + build.args_env)

        return PipelineConfig(
            build=build,
            login=self.to_auth_config(),
            builder=self.to_builder_config(environ),
            daemon=self.to_daemon_config(),
            dry_run=self.dry_run,
            cleanup=self.purge,
            metadata_file=self.metadata_file,
            artifact_file=self.artifact_file,
            cache_metrics_file=self.cache_metrics_file,
            base_image_registry=self.base_image_registry,
            base_image_username=self.base_image_username,
            base_image_password=self.base_image_password,
            ssh_home=environ.get("HOME", ""),
            environment=captured,
        )


@lru_cache()
def get_settings() -> PluginSettings:
    return PluginSettings()
