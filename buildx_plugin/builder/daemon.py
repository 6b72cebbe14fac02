from typing import Optional
from pathlib import Path
import asyncio

from buildx_plugin.builder.command_runner import CommandRunner
from buildx_plugin.builder.commands import command_daemon, command_info
from buildx_plugin.common.config.constants import (
    DAEMON_READY_ATTEMPTS,
    DAEMON_READY_INTERVAL_SECONDS,
    DOCKER_EXE,
    DOCKERD_EXE,
    SECCOMP_PROFILE_PATH,
)
from buildx_plugin.common.config.logging_config import get_logger
from buildx_plugin.common.dto.build import DaemonConfig
from buildx_plugin.common.exceptions.build_exceptions import DaemonNotReadyException
from buildx_plugin.common.utils.retry import RetryConfig, async_with_retry


logger = get_logger(__name__)


class DaemonManager:
    def __init__(
        self,
        runner: CommandRunner,
        docker_exe: str = DOCKER_EXE,
        dockerd_exe: str = DOCKERD_EXE,
        seccomp_profile_path: str = SECCOMP_PROFILE_PATH,
    ):
        self._runner = runner
        self._docker_exe = docker_exe
        self._dockerd_exe = dockerd_exe
        self._seccomp_profile_path = seccomp_profile_path
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def process(self) -> Optional[asyncio.subprocess.Process]:
        return self._process

    def command(self, daemon: DaemonConfig):
        seccomp = self._seccomp_profile_path if Path(self._seccomp_profile_path).exists() else None
        return command_daemon(daemon, seccomp_profile=seccomp, dockerd_exe=self._dockerd_exe)

    async def start(self, daemon: DaemonConfig) -> Optional[asyncio.subprocess.Process]:
        if daemon.disabled:
            logger.debug("Docker daemon startup disabled")
            return None

        self._process = await self._runner.start_background(
            self.command(daemon),
            show_output=daemon.debug,
        )
        logger.info(f"Started docker daemon (pid {self._process.pid})")
        return self._process

    async def wait_until_ready(
        self,
        attempts: int = DAEMON_READY_ATTEMPTS,
        interval_seconds: float = DAEMON_READY_INTERVAL_SECONDS,
    ) -> bool:
        config = RetryConfig(
            max_retries=max(0, attempts - 1),
            initial_delay=interval_seconds,
            max_delay=interval_seconds,
            exponential_base=1.0,
            jitter=False,
            retryable_exceptions=(DaemonNotReadyException,),
        )

        try:
            await async_with_retry(self._probe, config)
        except DaemonNotReadyException as e:
            logger.warning(f"Docker daemon not ready after {attempts} attempts, continuing: {e}")
            return False

        logger.info("Docker daemon is ready")
        return True

    async def _probe(self) -> None:
        try:
            result = await self._runner.capture(
                command_info(self._docker_exe),
                check=False,
                trace=False,
            )
        except OSError as e:
            raise DaemonNotReadyException(f"Docker info could not run: {e}")

        if not result.succeeded:
            raise DaemonNotReadyException(f"Docker info exited with {result.exit_code}")
