from typing import BinaryIO, Deque, Dict, List, Optional, Sequence
from collections import deque
from dataclasses import dataclass, field
import asyncio
import sys

from buildx_plugin.builder.commands import trace_command
from buildx_plugin.common.config.logging_config import get_logger
from buildx_plugin.common.exceptions.build_exceptions import CommandFailedException
from buildx_plugin.common.utils.time_utils import Timer


logger = get_logger(__name__)

STREAM_LIMIT = 1024 * 1024
OUTPUT_TAIL_LINES = 50


@dataclass
class CommandResult:
    args: List[str]
    exit_code: int
    output: str = ""
    error_output: str = ""
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def combined_output(self) -> str:
        return self.output + self.error_output


@dataclass
class _OutputTail:
    lines: Deque[bytes] = field(default_factory=lambda: deque(maxlen=OUTPUT_TAIL_LINES))

    def text(self) -> str:
        return b"".join(self.lines).decode("utf-8", errors="replace")


class CommandRunner:
    def __init__(
        self,
        console: Optional[BinaryIO] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        self._console = console if console is not None else sys.stdout.buffer
        self._env = env

    @property
    def console(self) -> BinaryIO:
        return self._console

    def trace(self, args: Sequence[str]) -> None:
        self._console.write(trace_command(args).encode("utf-8") + b"\n")
        self._console.flush()

    async def stream(
        self,
        args: Sequence[str],
        sink: Optional[object] = None,
        check: bool = True,
    ) -> CommandResult:
        """Run ``args`` copying merged stdout/stderr line by line into ``sink``."""
        sink = sink if sink is not None else self._console
        args = list(args)
        self.trace(args)

        timer = Timer().start()
        process = await asyncio.create_subprocess_exec(
            *args,
            env=self._env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            limit=STREAM_LIMIT,
        )

        tail = _OutputTail()
        while True:
            line = await process.stdout.readline()
            if not line:
                break
            sink.write(line)
            tail.lines.append(line)
            # buffered lines never suspend readline, so the line reader needs a turn
            await asyncio.sleep(0)

        await process.wait()
        timer.stop()

        result = CommandResult(
            args=args,
            exit_code=process.returncode,
            output=tail.text(),
            duration_seconds=timer.elapsed,
        )
        logger.debug(f"{' '.join(args[1:3])} exited with {result.exit_code} after {timer.elapsed_formatted}")

        if check and not result.succeeded:
            raise self._failure(result)
        return result

    async def capture(
        self,
        args: Sequence[str],
        stdin: Optional[bytes] = None,
        check: bool = True,
        trace: bool = True,
    ) -> CommandResult:
        args = list(args)
        if trace:
            self.trace(args)

        timer = Timer().start()
        process = await asyncio.create_subprocess_exec(
            *args,
            env=self._env,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate(input=stdin)
        timer.stop()

        result = CommandResult(
            args=args,
            exit_code=process.returncode,
            output=(stdout or b"").decode("utf-8", errors="replace"),
            error_output=(stderr or b"").decode("utf-8", errors="replace"),
            duration_seconds=timer.elapsed,
        )

        if check and not result.succeeded:
            raise self._failure(result)
        return result

    async def start_background(
        self,
        args: Sequence[str],
        show_output: bool = False,
    ) -> asyncio.subprocess.Process:
        args = list(args)
        self.trace(args)
        target = None if show_output else asyncio.subprocess.DEVNULL
        return await asyncio.create_subprocess_exec(
            *args,
            env=self._env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=target,
            stderr=target,
        )

    def _failure(self, result: CommandResult) -> CommandFailedException:
        return CommandFailedException(
            message=f"Command {' '.join(result.args[1:3])} failed with exit code {result.exit_code}",
            args=result.args,
            exit_code=result.exit_code,
            output=result.combined_output,
        )
