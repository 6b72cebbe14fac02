import io
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from buildx_plugin.builder.command_runner import CommandResult, CommandRunner
from buildx_plugin.common.dto.build import (
    AuthConfig,
    BuildConfig,
    BuilderConfig,
    DaemonConfig,
    PipelineConfig,
)


DOCKER = "/usr/local/bin/docker"


@dataclass
class FakeResponse:
    prefix: Tuple[str, ...]
    exit_code: int = 0
    output: str = ""
    error_output: str = ""
    lines: Tuple[str, ...] = ()
    times: Optional[int] = None
    raises: Optional[BaseException] = None

    def matches(self, args: Sequence[str]) -> bool:
        if self.times is not None and self.times <= 0:
            return False
        return tuple(args[1:1 + len(self.prefix)]) == self.prefix


class FakeRunner(CommandRunner):
    """Records commands and answers them from registered responses."""

    def __init__(self):
        super().__init__(console=io.BytesIO())
        self.calls: List[List[str]] = []
        self.stdin: List[Optional[bytes]] = []
        self.background: List[List[str]] = []
        self._responses: List[FakeResponse] = []

    def on(
        self,
        *prefix: str,
        exit_code: int = 0,
        output: str = "",
        error_output: str = "",
        lines: Sequence[str] = (),
        times: Optional[int] = None,
        raises: Optional[BaseException] = None,
    ) -> "FakeRunner":
        self._responses.append(
            FakeResponse(
                prefix=tuple(prefix),
                exit_code=exit_code,
                output=output,
                error_output=error_output,
                lines=tuple(lines),
                times=times,
                raises=raises,
            )
        )
        return self

    def commands(self, *prefix: str) -> List[List[str]]:
        return [args for args in self.calls if tuple(args[1:1 + len(prefix)]) == prefix]

    def _respond(self, args: Sequence[str]) -> FakeResponse:
        for response in self._responses:
            if response.matches(args):
                if response.times is not None:
                    response.times -= 1
                return response
        return FakeResponse(prefix=())

    async def stream(self, args, sink=None, check=True) -> CommandResult:
        args = list(args)
        self.trace(args)
        self.calls.append(args)
        self.stdin.append(None)

        response = self._respond(args)
        if response.raises is not None:
            raise response.raises

        sink = sink if sink is not None else self.console
        for line in response.lines:
            sink.write(line.encode("utf-8"))

        result = CommandResult(
            args=args,
            exit_code=response.exit_code,
            output="".join(response.lines) + response.output,
        )
        if check and not result.succeeded:
            raise self._failure(result)
        return result

    async def capture(self, args, stdin=None, check=True, trace=True) -> CommandResult:
        args = list(args)
        if trace:
            self.trace(args)
        self.calls.append(args)
        self.stdin.append(stdin)

        response = self._respond(args)
        if response.raises is not None:
            raise response.raises

        result = CommandResult(
            args=args,
            exit_code=response.exit_code,
            output=response.output,
            error_output=response.error_output,
        )
        if check and not result.succeeded:
            raise self._failure(result)
        return result

    async def start_background(self, args, show_output=False):
        self.background.append(list(args))
        process = MagicMock()
        process.pid = 4242
        return process

    @property
    def console_text(self) -> str:
        return self.console.getvalue().decode("utf-8")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def build_config() -> BuildConfig:
    return BuildConfig(
        remote="https://github.com/octocat/hello-world.git",
        name="d8dbe4d94f15fe89232e0402c6e8a0ddf21af3ab",
        repo="octocat/hello-world",
        tags=["latest", "1.0.0"],
        link="https://github.com/octocat/hello-world",
        auto_label=False,
    )


@pytest.fixture
def make_pipeline_config(tmp_path, build_config):
    def _make(
        build: Optional[BuildConfig] = None,
        login: Optional[AuthConfig] = None,
        builder: Optional[BuilderConfig] = None,
        **overrides,
    ) -> PipelineConfig:
        values: Dict = {
            "build": build or build_config,
            "login": login or AuthConfig(
                registry="registry.example.com",
                username="octocat",
                password=SecretStr("hunter2"),
            ),
            "builder": builder or BuilderConfig(),
            "daemon": DaemonConfig(disabled=True),
            "docker_home": str(tmp_path / "docker"),
            "ssh_home": str(tmp_path / "home"),
            "daemon_ready_attempts": 1,
            "daemon_ready_interval_seconds": 0.0,
        }
        values.update(overrides)
        return PipelineConfig(**values)

    return _make
