"""Turn a :class:`FormatRequest` into a :class:`FormatResult`.

The assembler spawns the formatter through :class:`ProcessInvoker`, feeds its
stdout into :class:`ReplacementStreamParser` as chunks arrive and collects the
resulting edits. Each request walks a small state machine::

    IDLE -> SPAWNED -> STREAMING -> COMPLETED | FAILED | CANCELLED

Failures are all-or-nothing: no edits survive a failed or cancelled run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Mapping, Tuple

from .apply import apply_edits
from .errors import ApplyFailure, FormatCancelled, FormatFailure, MalformedOutput, ToolNotFound
from .invoker import CancellationToken, ProcessInvoker, build_command
from .models import CursorHint, Edit, FormatRequest, FormatResult, ProcessOutcome
from .offsets import OffsetTranslator, char_range_to_bytes
from .resolver import BinaryResolver
from .stream import CursorEvent, EndOfStream, ReplacementEvent, ReplacementStreamParser, StreamEvent
from .telemetry import emit_event

LOGGER = logging.getLogger(__name__)


class FormatState(str, Enum):
    """Lifecycle states of a single format request."""

    IDLE = "idle"
    SPAWNED = "spawned"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES: FrozenSet[FormatState] = frozenset(
    {FormatState.COMPLETED, FormatState.FAILED, FormatState.CANCELLED}
)

_TRANSITIONS: Dict[FormatState, FrozenSet[FormatState]] = {
    FormatState.IDLE: frozenset({FormatState.SPAWNED, FormatState.FAILED, FormatState.CANCELLED}),
    FormatState.SPAWNED: frozenset({FormatState.STREAMING, FormatState.FAILED, FormatState.CANCELLED}),
    FormatState.STREAMING: _TERMINAL_STATES,
    FormatState.COMPLETED: frozenset(),
    FormatState.FAILED: frozenset(),
    FormatState.CANCELLED: frozenset(),
}

StateObserver = Callable[[FormatState], None]


@dataclass(slots=True)
class FormatRun:
    """State tracker for one request."""

    observer: StateObserver | None = None
    state: FormatState = FormatState.IDLE
    history: List[FormatState] = field(default_factory=lambda: [FormatState.IDLE])

    def advance(self, target: FormatState) -> None:
        """Move to ``target`` or raise :class:`RuntimeError` if not allowed."""

        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal format state transition {self.state.value} -> {target.value}")
        previous = self.state
        self.state = target
        self.history.append(target)
        emit_event("format.state", previous=previous, state=target)
        if self.observer is not None:
            self.observer(target)


@dataclass(slots=True)
class _EventCollector:
    """Accumulates parser events and remembers the first protocol error."""

    edits: List[Edit] = field(default_factory=list)
    cursor: CursorHint | None = None
    incomplete_format: bool = False
    error: MalformedOutput | None = None

    def extend(self, events: List[StreamEvent]) -> None:
        for event in events:
            if isinstance(event, ReplacementEvent):
                self.edits.append(event.edit)
            elif isinstance(event, CursorEvent):
                self.cursor = event.hint
            elif isinstance(event, EndOfStream):
                self.incomplete_format = event.incomplete_format


class EditAssembler:
    """Run the formatter for a request and assemble character-offset edits."""

    def __init__(
        self,
        *,
        resolver: BinaryResolver | None = None,
        invoker: ProcessInvoker | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._resolver = resolver or BinaryResolver()
        self._invoker = invoker or ProcessInvoker()
        self._env = dict(env) if env is not None else None

    async def run(
        self,
        request: FormatRequest,
        *,
        token: CancellationToken | None = None,
        observer: StateObserver | None = None,
    ) -> FormatResult:
        """Format ``request`` and return its edits.

        Raises :class:`FormatFailure`, :class:`MalformedOutput` or
        :class:`FormatCancelled`. A missing executable is reported through an
        empty result with ``status="tool-not-found"`` instead of raising.
        """

        run = FormatRun(observer=observer)
        byte_range: Tuple[int, int] | None = None
        if request.start is not None and request.end is not None:
            byte_range = char_range_to_bytes(request.text, request.start, request.end)

        executable = self._resolver.resolve(request.executable)
        command = build_command(executable, request, byte_range)
        translator = OffsetTranslator(request.text)
        parser = ReplacementStreamParser(translator)
        collected = _EventCollector()

        def _on_stdout(chunk: bytes) -> None:
            if collected.error is not None:
                return
            try:
                collected.extend(parser.feed(chunk))
            except MalformedOutput as error:
                collected.error = error

        def _on_input_closed() -> None:
            if run.state is FormatState.SPAWNED:
                run.advance(FormatState.STREAMING)

        try:
            outcome = await self._invoker.run(
                command,
                input_text=request.text,
                cwd=request.working_directory,
                env=self._env,
                on_stdout=_on_stdout,
                on_spawn=lambda: run.advance(FormatState.SPAWNED),
                on_input_closed=_on_input_closed,
                token=token,
            )
        except ToolNotFound as error:
            run.advance(FormatState.FAILED)
            LOGGER.info("%s", error)
            emit_event("format.tool_not_found", executable=error.executable)
            return FormatResult(status="tool-not-found", notice=str(error))
        except (FormatCancelled, asyncio.CancelledError):
            run.advance(FormatState.CANCELLED)
            emit_event("format.cancelled", command=command)
            raise
        except BaseException:
            run.advance(FormatState.FAILED)
            raise

        if run.state is FormatState.SPAWNED:
            run.advance(FormatState.STREAMING)

        try:
            result = self._finish(request, outcome, parser, collected)
        except (FormatFailure, MalformedOutput) as error:
            run.advance(FormatState.FAILED)
            emit_event("format.failed", error=type(error).__name__, message=str(error))
            raise

        run.advance(FormatState.COMPLETED)
        emit_event(
            "format.completed",
            edits=len(result.edits),
            cursor=result.cursor,
            incomplete_format=result.incomplete_format,
        )
        return result

    def _finish(
        self,
        request: FormatRequest,
        outcome: ProcessOutcome,
        parser: ReplacementStreamParser,
        collected: _EventCollector,
    ) -> FormatResult:
        if not outcome.ok:
            diagnostics = outcome.stderr.strip()
            if outcome.exit_code == 0:
                message = f"{outcome.command[0]} reported diagnostics"
            else:
                message = f"{outcome.command[0]} exited with code {outcome.exit_code}"
            if diagnostics:
                message = f"{message}: {diagnostics}"
            raise FormatFailure(
                message,
                diagnostics=diagnostics,
                exit_code=outcome.exit_code,
                details={"command": list(outcome.command)},
            )
        if collected.error is not None:
            raise collected.error
        collected.extend(parser.close())
        if collected.incomplete_format:
            LOGGER.warning("Formatter reported an incomplete format for the request")
        cursor = None
        if collected.cursor is not None:
            cursor = _cursor_position(request.text, collected.edits, collected.cursor)
        return FormatResult(
            edits=tuple(collected.edits),
            cursor=cursor,
            incomplete_format=collected.incomplete_format,
        )


def _cursor_position(text: str, edits: List[Edit], hint: CursorHint) -> int:
    """Translate the caret hint against the formatted text.

    clang-format reports the cursor as a byte offset into its output, so the
    edits are applied first.
    """

    try:
        formatted = apply_edits(text, edits)
    except ApplyFailure as error:
        raise MalformedOutput(f"replacements cannot be applied: {error}", details=error.details) from error
    return OffsetTranslator(formatted).translate(hint.offset)


__all__ = ["EditAssembler", "FormatRun", "FormatState", "StateObserver"]
