from typing import Optional, List, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import asyncio

from buildx_plugin.builder.artifact_writer import get_digest, write_artifact_file
from buildx_plugin.builder.build_options import sanitize_cache_entries, with_environment_build_args
from buildx_plugin.builder.builder_manager import BuilderManager
from buildx_plugin.builder.cache_metrics import CacheMetricsExtractor, write_cache_metrics
from buildx_plugin.builder.command_runner import CommandResult, CommandRunner
from buildx_plugin.builder.commands import (
    command_build,
    command_info,
    command_login,
    command_login_access_token,
    command_prune,
    command_rmi,
    command_version,
    is_command_buildx_build,
    is_command_prune,
    is_ignorable_failure,
)
from buildx_plugin.builder.daemon import DaemonManager
from buildx_plugin.builder.output_tee import LineTee
from buildx_plugin.common.config.constants import INSECURE_PASSWORD_WARNING, LOGIN_SUCCEEDED_MARKER
from buildx_plugin.common.config.logging_config import get_build_logger, get_logger
from buildx_plugin.common.dto.base import secret_value
from buildx_plugin.common.dto.build import AuthConfig, BuildConfig, LoginMode, PipelineConfig
from buildx_plugin.common.dto.metrics import CacheMetrics
from buildx_plugin.common.exceptions.base_exceptions import AuthenticationException
from buildx_plugin.common.exceptions.build_exceptions import (
    ArtifactWriteError,
    BuildException,
    CommandFailedException,
    MetadataParseError,
)
from buildx_plugin.common.utils.file_utils import ensure_directory, write_file
from buildx_plugin.common.utils.time_utils import Timer


logger = get_logger(__name__)


class PipelinePhase(str, Enum):
    DAEMON = "daemon"
    AUTHENTICATE = "authenticate"
    PROVISION = "provision"
    BUILD = "build"
    REPORT = "report"
    CLEANUP = "cleanup"


@dataclass
class PipelineResult:
    success: bool = False
    daemon_ready: Optional[bool] = None
    builder_name: Optional[str] = None
    digest: Optional[str] = None
    cache_metrics: Optional[CacheMetrics] = None
    ignored_failures: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


def scrub_login_output(output: str) -> str:
    return output.replace(INSECURE_PASSWORD_WARNING, "").strip()


def credential_kind(login: AuthConfig) -> str:
    if login.has_password and login.has_config:
        return "password and auth config file"
    if login.has_password:
        return "password"
    if login.has_config:
        return "auth config file"
    if login.has_access_token:
        return "access token"
    return "guest"


class BuildPipeline:
    def __init__(
        self,
        config: PipelineConfig,
        runner: Optional[CommandRunner] = None,
        daemon_manager: Optional[DaemonManager] = None,
        builder_manager: Optional[BuilderManager] = None,
    ):
        self._config = config
        self._runner = runner or CommandRunner()
        self._daemon = daemon_manager or DaemonManager(self._runner, docker_exe=config.docker_exe)
        self._builders = builder_manager or BuilderManager(self._runner, docker_exe=config.docker_exe)
        self._phase = PipelinePhase.DAEMON
        self._log = get_build_logger(
            repo=config.build.repo,
            registry=config.login.registry or None,
        )

    @property
    def phase(self) -> PipelinePhase:
        return self._phase

    async def execute(self) -> PipelineResult:
        result = PipelineResult()
        timer = Timer().start()

        try:
            await self._run_pipeline(result)
        except OSError as e:
            raise BuildException(
                f"Pipeline failed during {self._phase.value}: {e}",
                stage=self._phase.value,
                cause=e,
            )
        finally:
            result.duration_seconds = timer.stop()

        result.success = True
        self._log.info(f"Pipeline finished in {timer.elapsed_formatted}")
        return result

    async def _run_pipeline(self, result: PipelineResult) -> None:
        config = self._config
        logger.debug(f"Build configuration: {config.build.model_dump_redacted()}")

        self._phase = PipelinePhase.DAEMON
        await self._daemon.start(config.daemon)
        result.daemon_ready = await self._daemon.wait_until_ready(
            attempts=config.daemon_ready_attempts,
            interval_seconds=config.daemon_ready_interval_seconds,
        )

        self._phase = PipelinePhase.AUTHENTICATE
        self._write_auth_file()
        logger.info(f"Detected registry credentials: {credential_kind(config.login)}")
        await self._login_base_image()
        await self._login(config.login)

        build = self._prepare_build()

        self._phase = PipelinePhase.PROVISION
        async with self._builders.provision(config.builder, exports_cache=bool(build.cache_to)) as builder_name:
            result.builder_name = builder_name

            self._phase = PipelinePhase.BUILD
            await self._run_command(command_version(config.docker_exe), result)
            await self._run_command(command_info(config.docker_exe), result)

            args = command_build(
                build,
                builder_name=builder_name or "",
                dry_run=config.dry_run,
                metadata_file=config.metadata_file,
                docker_exe=config.docker_exe,
            )
            result.cache_metrics = await self._build(args)

        self._phase = PipelinePhase.REPORT
        self._report(build, result)

        if config.cleanup:
            self._phase = PipelinePhase.CLEANUP
            await self._cleanup(build, result)

    def _write_auth_file(self) -> None:
        login = self._config.login
        if not login.has_config:
            return

        path = Path(self._config.docker_home) / "config.json"
        try:
            write_file(path, secret_value(login.config), mode=0o600)
        except OSError as e:
            raise AuthenticationException(
                f"Error writing config.json: {e}",
                registry=login.registry or None,
                cause=e,
            )
        logger.debug(f"Wrote registry auth file {path}")

    async def _login_base_image(self) -> None:
        base_login = self._config.base_image_login()
        if base_login is None:
            return

        if not base_login.username:
            logger.warning(
                "Username cannot be empty. The base image connector requires authenticated access."
            )
        if not base_login.has_password:
            logger.warning(
                "Password cannot be empty. The base image connector requires authenticated access."
            )
        await self._login_with_password(base_login, "Error authenticating base connector")

    async def _login(self, login: AuthConfig) -> None:
        mode = login.login_mode
        if mode == LoginMode.PASSWORD:
            await self._login_with_password(login, "Error authenticating")
        elif mode == LoginMode.ACCESS_TOKEN:
            await self._login_with_token(login)

    async def _login_with_password(self, login: AuthConfig, message: str) -> None:
        result = await self._runner.capture(
            command_login(login, self._config.docker_exe),
            check=False,
        )
        if not result.succeeded:
            output = scrub_login_output(result.combined_output)
            raise AuthenticationException(
                f"{message}: exit status {result.exit_code}",
                registry=login.registry or None,
                output=output,
            )
        logger.info(f"Logged in to {login.registry or 'default registry'}")

    async def _login_with_token(self, login: AuthConfig) -> None:
        result = await self._runner.capture(
            command_login_access_token(login, self._config.docker_exe),
            stdin=secret_value(login.access_token).encode("utf-8"),
            check=False,
        )
        output = scrub_login_output(result.combined_output)
        if not result.succeeded:
            raise AuthenticationException(
                f"Error logging in to Docker registry: exit status {result.exit_code}",
                registry=login.registry or None,
                output=output,
            )
        if LOGIN_SUCCEEDED_MARKER not in output:
            raise AuthenticationException(
                "Login did not succeed",
                registry=login.registry or None,
                output=output,
            )
        logger.info("Login successful")

    def _prepare_build(self) -> BuildConfig:
        build = with_environment_build_args(self._config.build, self._config.environment)
        build = sanitize_cache_entries(build)

        key = secret_value(build.ssh_agent_key)
        if key and not build.ssh_key_path:
            build = build.evolve(ssh_key_path=self._write_ssh_key(key))
        return build

    def _write_ssh_key(self, key: str) -> str:
        home = Path(self._config.ssh_home) if self._config.ssh_home else Path.home()
        try:
            ssh_dir = ensure_directory(home / ".ssh", mode=0o700)
            path = write_file(ssh_dir / "id_rsa", key, mode=0o400)
        except OSError as e:
            raise BuildException(
                f"Unable to write ssh key: {e}",
                stage=PipelinePhase.BUILD.value,
                cause=e,
            )
        return f"default={path}"

    async def _run_command(
        self,
        args: Sequence[str],
        result: PipelineResult,
    ) -> Optional[CommandResult]:
        try:
            return await self._runner.stream(args)
        except CommandFailedException:
            if not is_ignorable_failure(args):
                raise
            if is_command_prune(args):
                logger.warning("Could not prune system containers. Ignoring...")
            else:
                logger.warning(f"Could not remove image {args[2]}. Ignoring...")
            result.ignored_failures.append(" ".join(args[1:3]))
            return None

    async def _build(self, args: List[str]) -> Optional[CacheMetrics]:
        metrics_file = self._config.cache_metrics_file
        if not metrics_file or not is_command_buildx_build(args):
            await self._runner.stream(args)
            return None

        tee = LineTee(self._runner.console)
        extractor = CacheMetricsExtractor()

        pumped, drained = await asyncio.gather(
            self._pump(args, tee),
            extractor.consume(tee.lines()),
            return_exceptions=True,
        )

        metrics: Optional[CacheMetrics] = None
        if isinstance(drained, BaseException):
            logger.warning(f"Could not parse cache metrics: {drained}")
        else:
            metrics = drained
            try:
                write_cache_metrics(metrics, metrics_file)
                logger.info(
                    f"Cache metrics: {metrics.cached}/{metrics.total_layers} layers cached "
                    f"({metrics.cache_hit_ratio:.0%})"
                )
            except OSError as e:
                logger.warning(f"Could not write cache metrics: {e}")

        if isinstance(pumped, BaseException):
            raise pumped
        return metrics

    async def _pump(self, args: List[str], tee: LineTee) -> CommandResult:
        try:
            return await self._runner.stream(args, sink=tee)
        finally:
            await tee.close()

    def _report(self, build: BuildConfig, result: PipelineResult) -> None:
        config = self._config
        if not config.artifact_file:
            return

        try:
            result.digest = get_digest(config.metadata_file)
        except MetadataParseError as e:
            logger.warning(f"Could not fetch the digest. {e}")
            return

        try:
            write_artifact_file(
                config.daemon.registry_type,
                config.artifact_file,
                config.daemon.artifact_registry,
                build.repo,
                result.digest,
                build.tags,
            )
        except ArtifactWriteError as e:
            logger.warning(f"Failed to write plugin artifact file at path {config.artifact_file}: {e}")

    async def _cleanup(self, build: BuildConfig, result: PipelineResult) -> None:
        commands: List[List[str]] = []
        if build.name:
            commands.append(command_rmi(build.name, self._config.docker_exe))
        commands.append(command_prune(self._config.docker_exe))

        for args in commands:
            try:
                await self._run_command(args, result)
            except OSError as e:
                logger.warning(f"Could not run {' '.join(args[1:3])}: {e}")
