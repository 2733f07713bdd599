"""Asynchronous subprocess execution for the formatter tool."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Mapping, Sequence, Tuple

from .errors import FormatCancelled, FormatFailure, ToolNotFound
from .models import FormatRequest, ProcessOutcome

LOGGER = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_OUTPUT_FORMAT_FLAG = "-output-replacements-xml"

ChunkSink = Callable[[bytes], None]
Hook = Callable[[], None]


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and a run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def build_command(
    executable: str,
    request: FormatRequest,
    byte_range: Tuple[int, int] | None = None,
) -> Tuple[str, ...]:
    """Assemble the clang-format argument vector for ``request``.

    ``byte_range`` is the request range already encoded as ``(offset, length)``
    in UTF-8 bytes. A zero-length range also asks for the new cursor position.
    """

    args: List[str] = [
        executable,
        _OUTPUT_FORMAT_FLAG,
        f"-style={request.style}",
        f"-fallback-style={request.fallback_style}",
    ]
    if request.assume_filename:
        args.append(f"-assume-filename={request.assume_filename}")
    if byte_range is not None:
        offset, length = byte_range
        args.extend((f"-offset={offset}", f"-length={length}"))
        if length == 0:
            args.append(f"-cursor={offset}")
    args.extend(request.extra_args)
    return tuple(args)


class ProcessInvoker:
    """Spawn the formatter, stream the source in, and collect its output."""

    def __init__(self, *, chunk_size: int = _CHUNK_SIZE) -> None:
        self._chunk_size = max(1, chunk_size)

    async def run(
        self,
        command: Sequence[str],
        *,
        input_text: str,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        on_stdout: ChunkSink | None = None,
        on_spawn: Hook | None = None,
        on_input_closed: Hook | None = None,
        token: CancellationToken | None = None,
    ) -> ProcessOutcome:
        """Execute ``command`` with ``input_text`` on stdin.

        stdout chunks are handed to ``on_stdout`` in arrival order. A
        cancellation through ``token`` kills the process and raises
        :class:`FormatCancelled`; any other exception raised while the process
        runs also kills it before propagating.
        """

        invocation = tuple(str(part) for part in command)
        workdir = Path(cwd) if cwd is not None else None
        if token is not None and token.cancelled:
            raise FormatCancelled(details={"command": invocation})
        if workdir is not None and not workdir.is_dir():
            raise FormatFailure(
                f"Working directory does not exist: {workdir}",
                details={"cwd": workdir.as_posix()},
            )

        process = await self._spawn(invocation, workdir, env)
        LOGGER.debug("Spawned %s (pid %s)", invocation[0], process.pid)
        if on_spawn is not None:
            try:
                on_spawn()
            except BaseException:
                await self._terminate(process)
                raise

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []

        def _collect_stdout(chunk: bytes) -> None:
            stdout_chunks.append(chunk)
            if on_stdout is not None:
                on_stdout(chunk)

        payload = input_text.encode("utf-8")
        tasks = [
            asyncio.create_task(self._write_input(process, payload, on_input_closed)),
            asyncio.create_task(self._drain(process.stdout, _collect_stdout)),
            asyncio.create_task(self._drain(process.stderr, stderr_chunks.append)),
        ]
        waiter = asyncio.create_task(self._wait_for_exit(process, tasks))
        cancel_waiter = asyncio.create_task(token.wait()) if token is not None else None

        try:
            if cancel_waiter is None:
                exit_code = await waiter
            else:
                done, _ = await asyncio.wait({waiter, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if cancel_waiter in done:
                    LOGGER.debug("Cancellation requested for pid %s", process.pid)
                    raise FormatCancelled(details={"command": invocation})
                exit_code = waiter.result()
        except BaseException:
            waiter.cancel()
            for task in tasks:
                task.cancel()
            await self._terminate(process)
            await asyncio.gather(waiter, *tasks, return_exceptions=True)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        return ProcessOutcome(
            command=invocation,
            cwd=workdir,
            exit_code=exit_code,
            stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        )

    async def _spawn(
        self,
        invocation: Tuple[str, ...],
        workdir: Path | None,
        env: Mapping[str, str] | None,
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *invocation,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(workdir) if workdir is not None else None,
                env=dict(env) if env is not None else None,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as error:
            raise ToolNotFound(invocation[0], details={"error": str(error)}) from error

    async def _write_input(
        self,
        process: asyncio.subprocess.Process,
        payload: bytes,
        on_input_closed: Hook | None,
    ) -> None:
        stdin = process.stdin
        assert stdin is not None
        try:
            stdin.write(payload)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            LOGGER.debug("Formatter closed stdin early (pid %s)", process.pid)
        finally:
            stdin.close()
        try:
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            pass
        if on_input_closed is not None:
            on_input_closed()

    async def _drain(self, stream: asyncio.StreamReader | None, sink: ChunkSink) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(self._chunk_size)
            if not chunk:
                break
            sink(chunk)

    async def _wait_for_exit(
        self,
        process: asyncio.subprocess.Process,
        tasks: Sequence["asyncio.Task[None]"],
    ) -> int:
        await asyncio.gather(*tasks)
        return await process.wait()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()


__all__ = ["CancellationToken", "ProcessInvoker", "build_command"]
