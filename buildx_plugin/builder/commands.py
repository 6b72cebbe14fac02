from typing import List, Optional, Sequence
import re

from buildx_plugin.common.config.constants import (
    ACCESS_KEY_ID_KEY,
    ACCESS_TOKEN_USERNAME,
    GCP_JSON_KEY_KEY,
    SECRET_ACCESS_KEY_KEY,
    DOCKER_EXE,
    DOCKER_SOCKET_HOST,
    DOCKERD_EXE,
)
from buildx_plugin.common.dto.base import secret_value
from buildx_plugin.common.dto.build import AuthConfig, BuildConfig, BuilderConfig, DaemonConfig
from buildx_plugin.builder.build_options import (
    env_secret_arg,
    file_secret_arg,
    label_args,
    sanitize_cache_entries,
)


CREDENTIAL_KEYS = (ACCESS_KEY_ID_KEY, SECRET_ACCESS_KEY_KEY, GCP_JSON_KEY_KEY)


def command_version(docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "version"]


def command_info(docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "info"]


def command_login(login: AuthConfig, docker_exe: str = DOCKER_EXE) -> List[str]:
    args = [docker_exe, "login", "-u", login.username, "-p", secret_value(login.password)]
    if login.email:
        args.extend(["-e", login.email])
    args.append(login.registry)
    return args


def command_login_access_token(login: AuthConfig, docker_exe: str = DOCKER_EXE) -> List[str]:
    # the token itself is fed on stdin
    return [
        docker_exe, "login",
        "-u", ACCESS_TOKEN_USERNAME,
        "--password-stdin",
        login.registry,
    ]


def command_build(
    build: BuildConfig,
    builder_name: str = "",
    dry_run: bool = False,
    metadata_file: str = "",
    created: Optional[str] = None,
    docker_exe: str = DOCKER_EXE,
) -> List[str]:
    build = sanitize_cache_entries(build)

    args = [
        docker_exe, "buildx", "build",
        "--rm=true",
        "-f", build.dockerfile,
    ]

    if builder_name:
        args.extend(["--builder", builder_name])
    for tag in build.tags:
        args.extend(["-t", f"{build.repo}:{tag}"])

    if not dry_run:
        args.append("--push")
    elif build.buildx_load:
        args.append("--load")

    args.append(build.context)

    if metadata_file:
        args.extend(["--metadata-file", metadata_file])
    if build.squash:
        args.append("--squash")
    if build.compress:
        args.append("--compress")
    if build.pull:
        args.append("--pull=true")
    if build.no_cache:
        args.append("--no-cache")
    for entry in build.cache_from:
        args.extend(["--cache-from", entry])
    for entry in build.cache_to:
        args.extend(["--cache-to", entry])
    for arg in build.active_build_args():
        args.extend(["--build-arg", arg])
    for host in build.add_host:
        args.extend(["--add-host", host])

    if build.secret:
        args.extend(["--secret", build.secret])
    for spec in build.secret_envs:
        secret = env_secret_arg(spec)
        if secret:
            args.extend(["--secret", secret])
    for spec in build.secret_files:
        secret = file_secret_arg(spec)
        if secret:
            args.extend(["--secret", secret])

    if build.target:
        args.extend(["--target", build.target])
    if build.quiet:
        args.append("--quiet")
    if build.platform:
        args.extend(["--platform", build.platform])
    if build.ssh_key_path:
        args.extend(["--ssh", build.ssh_key_path])

    args.extend(label_args(build, created))
    return args


def command_builder_create(
    builder: BuilderConfig,
    driver_opts: Sequence[str],
    extra_buildkitd_flags: Optional[Sequence[str]] = None,
    docker_exe: str = DOCKER_EXE,
) -> List[str]:
    args = [docker_exe, "buildx", "create", "--use", "--driver", builder.driver]

    if builder.name:
        args.extend(["--name", builder.name])
    if builder.daemon_config:
        args.extend(["--buildkitd-config", builder.daemon_config])
    for opt in driver_opts:
        args.extend(["--driver-opt", opt])

    if builder.driver_http_proxy:
        args.extend(["--driver-opt", f"env.http_proxy={builder.driver_http_proxy}"])
        if builder.driver_https_proxy:
            args.extend(["--driver-opt", f"env.https_proxy={builder.driver_https_proxy}"])
        args.extend(["--driver-opt", "network=host"])

    if builder.remote_conn and builder.is_remote:
        args.append(builder.remote_conn)

    for name, value in builder.inherit_env.items():
        args.extend(["--driver-opt", f"env.{name}={value}"])

    flags: List[str] = []
    if builder.tls_handshake_timeout:
        flags.append(f"--tls-handshake-timeout={builder.tls_handshake_timeout}")
    if builder.response_header_timeout:
        flags.append(f"--response-header-timeout={builder.response_header_timeout}")
    flags.extend(extra_buildkitd_flags or [])
    if flags:
        args.extend(["--buildkitd-flags", " ".join(flags)])

    return args


def command_builder_inspect(name: str, docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "buildx", "inspect", "--bootstrap", "--builder", name]


def command_builder_remove(name: str, docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "buildx", "rm", name]


def command_image_load(docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "image", "load"]


def command_rmi(name: str, docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "rmi", name]


def command_prune(docker_exe: str = DOCKER_EXE) -> List[str]:
    return [docker_exe, "system", "prune", "-f"]


def command_daemon(
    daemon: DaemonConfig,
    seccomp_profile: Optional[str] = None,
    dockerd_exe: str = DOCKERD_EXE,
) -> List[str]:
    args = [
        dockerd_exe,
        "--data-root", daemon.storage_path,
        DOCKER_SOCKET_HOST,
    ]

    if seccomp_profile:
        args.append(f"--seccomp-profile={seccomp_profile}")
    if daemon.storage_driver:
        args.extend(["-s", daemon.storage_driver])
    if daemon.insecure and daemon.registry:
        args.extend(["--insecure-registry", daemon.registry])
    if daemon.ipv6:
        args.append("--ipv6")
    if daemon.mirror:
        args.extend(["--registry-mirror", daemon.mirror])
    if daemon.bip:
        args.extend(["--bip", daemon.bip])
    for dns in daemon.dns:
        args.extend(["--dns", dns])
    for dns_search in daemon.dns_search:
        args.extend(["--dns-search", dns_search])
    if daemon.mtu:
        args.extend(["--mtu", daemon.mtu])

    return args


def is_command_buildx_build(args: Sequence[str]) -> bool:
    return len(args) > 3 and args[1] == "buildx" and args[2] == "build"


def is_command_prune(args: Sequence[str]) -> bool:
    return len(args) > 3 and args[2] == "prune"


def is_command_rmi(args: Sequence[str]) -> bool:
    return len(args) > 2 and args[1] == "rmi"


def is_ignorable_failure(args: Sequence[str]) -> bool:
    return is_command_prune(args) or is_command_rmi(args)


def _mask_descriptor(descriptor: str) -> str:
    pairs = []
    for pair in descriptor.split(","):
        key, sep, _ = pair.partition("=")
        if sep and key in CREDENTIAL_KEYS:
            pairs.append(f"{key}=********")
            if key == GCP_JSON_KEY_KEY:
                # json key content has its own commas
                break
            continue
        pairs.append(pair)
    return ",".join(pairs)


TOKEN_CONTENT_PATTERN = re.compile(r"--aws-token-content=\S+")


def trace_command(args: Sequence[str]) -> str:
    masked: List[str] = []
    previous = ""
    for arg in args:
        if previous in ("-p", "--password"):
            arg = "********"
        elif previous in ("--cache-from", "--cache-to"):
            arg = _mask_descriptor(arg)
        elif previous == "--driver-opt" and arg.startswith("env.AWS_"):
            arg = arg.partition("=")[0] + "=********"
        elif previous == "--buildkitd-flags":
            arg = TOKEN_CONTENT_PATTERN.sub("--aws-token-content=********", arg)
        masked.append(arg)
        previous = arg
    return "+ " + " ".join(masked)
