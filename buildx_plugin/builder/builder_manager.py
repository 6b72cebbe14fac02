from typing import AsyncIterator, List, Optional, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
import json

from buildx_plugin.builder.command_runner import CommandRunner
from buildx_plugin.builder.commands import (
    command_builder_create,
    command_builder_inspect,
    command_builder_remove,
    command_image_load,
)
from buildx_plugin.common.config.constants import (
    BUILDKIT_TARBALL_FILE,
    BUILDKIT_VERSION_FILE,
    BuilderDriver,
    DOCKER_EXE,
)
from buildx_plugin.common.config.logging_config import get_logger
from buildx_plugin.common.dto.build import BuilderConfig
from buildx_plugin.common.exceptions.base_exceptions import ErrorCode
from buildx_plugin.common.exceptions.build_exceptions import (
    BuilderProvisioningException,
    CommandFailedException,
)
from buildx_plugin.common.utils.file_utils import safe_read_binary, safe_read_file


logger = get_logger(__name__)

AWS_TOKEN_FILE_ENV = "AWS_WEB_IDENTITY_TOKEN_FILE"
MAX_TOKEN_FLAG_BYTES = 4 * 1024


def resolve_driver(builder: BuilderConfig, exports_cache: bool) -> BuilderConfig:
    # cache export is not supported by the default docker driver
    if exports_cache and builder.is_default_driver:
        return builder.evolve(driver=BuilderDriver.DOCKER_CONTAINER.value)
    return builder


def pin_image_version(driver_opts: Sequence[str], version: str) -> List[str]:
    return [f"image={version}" if opt.startswith("image=") else opt for opt in driver_opts]


class BuilderManager:
    def __init__(
        self,
        runner: CommandRunner,
        docker_exe: str = DOCKER_EXE,
    ):
        self._runner = runner
        self._docker_exe = docker_exe
        self._assigned: List[str] = []

    @property
    def assigned_names(self) -> List[str]:
        return list(self._assigned)

    @asynccontextmanager
    async def provision(
        self,
        builder: BuilderConfig,
        exports_cache: bool = False,
    ) -> AsyncIterator[Optional[str]]:
        builder = resolve_driver(builder, exports_cache)
        if builder.is_default_driver:
            yield None
            return

        try:
            name = await self._create(builder)
            logger.info(f"Using buildx builder {name} ({builder.driver})")
            yield name
        finally:
            await self.teardown()

    async def teardown(self) -> None:
        while self._assigned:
            await self._remove(self._assigned.pop())

    async def load_buildkit(self, builder: BuilderConfig) -> str:
        if not builder.use_loaded_buildkit:
            return ""

        assets_dir = Path(builder.assets_dir)
        version = ""
        raw = safe_read_file(assets_dir / BUILDKIT_VERSION_FILE)
        if raw:
            try:
                data = json.loads(raw)
                if isinstance(data, dict):
                    version = str(data.get("buildkit_version") or "")
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid buildkit version file in {assets_dir}: {e}")

        tarball = safe_read_binary(assets_dir / BUILDKIT_TARBALL_FILE)
        if tarball is None:
            return ""

        try:
            await self._runner.capture(command_image_load(self._docker_exe), stdin=tarball)
        except (CommandFailedException, OSError) as e:
            logger.warning(f"Error while loading buildkit image: {e}")
            return ""

        return version

    async def _create(self, builder: BuilderConfig) -> str:
        primary_error: Optional[str] = None

        if builder.driver_opts_new:
            try:
                return await self._create_and_inspect(builder, builder.driver_opts_new)
            except (CommandFailedException, OSError) as e:
                primary_error = self._describe(e)
                logger.warning(f"Unable to set up buildx with new driver opts: {primary_error}")
                # a half-provisioned primary builder would block the fallback name
                await self.teardown()

        driver_opts = list(builder.driver_opts)
        version = await self.load_buildkit(builder) or builder.buildkit_version
        if version:
            logger.info(f"Using BuildKit version {version}")
            driver_opts = pin_image_version(driver_opts, version)

        try:
            result = await self._runner.capture(
                command_builder_create(builder, driver_opts, self._token_flags(builder), self._docker_exe)
            )
        except CommandFailedException as e:
            raise BuilderProvisioningException(
                message=f"Error while creating buildx builder: {self._describe(e)}",
                error_code=ErrorCode.BUILDER_CREATE_FAILED,
                builder_name=builder.name or None,
                driver=builder.driver,
                primary_error=primary_error,
                cause=e,
            )

        name = self._assign(result.output, builder)
        try:
            await self._inspect(name)
        except CommandFailedException as e:
            raise BuilderProvisioningException(
                message=f"Error while bootstrapping buildx builder {name}: {self._describe(e)}",
                error_code=ErrorCode.BUILDER_BOOTSTRAP_FAILED,
                builder_name=name,
                driver=builder.driver,
                primary_error=primary_error,
                cause=e,
            )
        return name

    async def _create_and_inspect(self, builder: BuilderConfig, driver_opts: Sequence[str]) -> str:
        result = await self._runner.capture(
            command_builder_create(builder, driver_opts, self._token_flags(builder), self._docker_exe)
        )
        name = self._assign(result.output, builder)
        await self._inspect(name)
        return name

    def _assign(self, output: str, builder: BuilderConfig) -> str:
        name = output.strip() or builder.name
        self._assigned.append(name)
        return name

    async def _inspect(self, name: str) -> None:
        await self._runner.capture(command_builder_inspect(name, self._docker_exe))

    async def _remove(self, name: str) -> None:
        try:
            await self._runner.capture(command_builder_remove(name, self._docker_exe))
            logger.debug(f"Removed buildx builder {name}")
        except (CommandFailedException, OSError) as e:
            logger.warning(f"Failed to remove buildx builder {name}: {e}")

    def _token_flags(self, builder: BuilderConfig) -> List[str]:
        token_path = builder.inherit_env.get(AWS_TOKEN_FILE_ENV)
        if not token_path:
            return []

        content = safe_read_file(token_path)
        if content is None:
            logger.warning(f"{AWS_TOKEN_FILE_ENV} is set to {token_path!r} but the file is not readable")
            return []
        if len(content.encode("utf-8")) > MAX_TOKEN_FLAG_BYTES:
            logger.warning(
                f"{AWS_TOKEN_FILE_ENV} content exceeds {MAX_TOKEN_FLAG_BYTES} bytes, "
                "buildkitd flags may be truncated"
            )
        return [f"--aws-token-content={content}", f"--aws-token-path={token_path}"]

    @staticmethod
    def _describe(error: Exception) -> str:
        if not isinstance(error, CommandFailedException):
            return str(error)
        output = (error.output or "").strip()
        return f"{error.message}: {output}" if output else error.message
