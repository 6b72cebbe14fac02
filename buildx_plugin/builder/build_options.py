from typing import Dict, List, Mapping, Optional

from buildx_plugin.common.config.constants import (
    ACCESS_KEY_ID_KEY,
    AWS_PLACEHOLDER,
    GCP_JSON_KEY_KEY,
    GCP_PLACEHOLDER,
    LABEL_PREFIX,
    PROXY_KEYS,
    SECRET_ACCESS_KEY_KEY,
    USE_PATH_STYLE_KEY,
)
from buildx_plugin.common.config.logging_config import get_logger
from buildx_plugin.common.dto.base import secret_value
from buildx_plugin.common.dto.build import BuildConfig
from buildx_plugin.common.utils.time_utils import to_rfc3339


logger = get_logger(__name__)


def placeholder_credentials(build: BuildConfig) -> Dict[str, str]:
    return {
        f"{ACCESS_KEY_ID_KEY}={AWS_PLACEHOLDER}": secret_value(build.s3_access_key),
        f"{SECRET_ACCESS_KEY_KEY}={AWS_PLACEHOLDER}": secret_value(build.s3_secret_key),
        f"{GCP_JSON_KEY_KEY}={GCP_PLACEHOLDER}": secret_value(build.gcp_json_key),
    }


def sanitize_cache_descriptor(
    descriptor: str,
    credentials: Mapping[str, str],
    path_style: bool = False,
) -> str:
    pairs: List[str] = []
    keys = set()

    for pair in descriptor.split(","):
        if pair in credentials:
            live = credentials[pair]
            if not live:
                continue
            key = pair.partition("=")[0]
            pair = f"{key}={live}"
        pairs.append(pair)
        keys.add(pair.partition("=")[0].strip())

    if path_style and "type=s3" in pairs and USE_PATH_STYLE_KEY not in keys:
        pairs.append(f"{USE_PATH_STYLE_KEY}=true")

    return ",".join(pairs)


def sanitize_cache_entries(build: BuildConfig) -> BuildConfig:
    credentials = placeholder_credentials(build)

    def sanitize(entries: List[str]) -> List[str]:
        sanitized = (sanitize_cache_descriptor(entry, credentials, build.s3_path_style) for entry in entries)
        return [entry for entry in sanitized if entry]

    cache_from = sanitize(build.cache_from)
    cache_to = sanitize(build.cache_to)
    return build.evolve(cache_from=cache_from, cache_to=cache_to)


def has_build_arg(args: List[str], key: str) -> bool:
    key = key.lower()
    return any(arg.partition("=")[0].strip().lower() == key for arg in args)


def lookup_environment(environment: Mapping[str, str], key: str) -> str:
    return environment.get(key) or environment.get(key.upper()) or ""


def _with_value(args: List[str], key: str, value: str) -> List[str]:
    if has_build_arg(args, key):
        return args
    added = [f"{key}={value}"]
    if key.upper() != key:
        added.append(f"{key.upper()}={value}")
    return args + added


def with_environment_build_args(
    build: BuildConfig,
    environment: Mapping[str, str],
    keys: Optional[List[str]] = None,
) -> BuildConfig:
    if keys is None:
        keys = list(PROXY_KEYS) + list(build.args_env)

    args = list(build.args)
    args_new = list(build.args_new)

    for key in keys:
        value = lookup_environment(environment, key)
        if not value:
            continue
        args = _with_value(args, key, value)
        args_new = _with_value(args_new, key, value)

    return build.evolve(args=args, args_new=args_new)


def secret_arg(spec: str, source: str) -> Optional[str]:
    key, sep, value = spec.partition("=")
    if not sep or not key or not value:
        logger.warning(f"Skipping invalid secret specification for id {key or '<empty>'!r}")
        return None
    return f"id={key},{source}={value}"


def env_secret_arg(spec: str) -> Optional[str]:
    return secret_arg(spec, "env")


def file_secret_arg(spec: str) -> Optional[str]:
    return secret_arg(spec, "src")


def label_args(build: BuildConfig, created: Optional[str] = None) -> List[str]:
    args: List[str] = []

    if build.auto_label:
        schema = [
            f"created={created or to_rfc3339()}",
            f"revision={build.name}",
            f"source={build.remote}",
            f"url={build.link}",
        ]
        schema.extend(build.label_schema)
        for label in schema:
            args.extend(["--label", f"{LABEL_PREFIX}.{label}"])

    for label in build.labels:
        args.extend(["--label", label])

    return args
