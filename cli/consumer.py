"""Per-turn stream consumer: rebuild assistant text and throughput from frames.

A turn moves ``idle -> streaming -> finalized``.  ``AssistantTurn`` is
immutable; every frame produces a new value, and a finalized turn
refuses further frames.  ``StreamConsumer`` drives one turn against a
frame stream and mirrors it into the ``Transcript``.
"""

import logging
import time
from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from enum import Enum
from itertools import count
from typing import Literal

from relaychat.core.frames import ContentDelta, Done, ErrorNotice, UsageRecord
from relaychat.core.messages import ChatMessage
from relaychat.infra.tokens import count_words, safe_elapsed, tokens_per_second

from .client import ClientTransportError, RelayHTTPError

logger = logging.getLogger(__name__)

STREAM_READ_ERROR_MESSAGE = "Error reading response stream. Please try again."
GENERIC_ERROR_MESSAGE = "Sorry, there was an error processing your request."
STREAM_INTERRUPTED_PREFIX = "Response interrupted: "

_STATUS_MESSAGES = {
    401: "Invalid API key. Please check your Cerebras API key in the settings.",
    400: "Invalid request. Please try again with a different prompt or model.",
    429: "Rate limit exceeded. Please try again later.",
}
_SERVER_ERROR_MESSAGE = (
    "Server error. The Cerebras service might be experiencing issues."
)


def describe_http_status(status_code: int) -> str:
    """Map a relay status code to the message shown to the user."""
    if status_code in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[status_code]
    if status_code >= 500:
        return _SERVER_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE


class TurnPhase(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINALIZED = "finalized"


class TurnStateError(RuntimeError):
    """A transition was requested from the wrong phase."""


class TurnFinalizedError(TurnStateError):
    """The turn (or transcript entry) is frozen."""


@dataclass(frozen=True)
class TurnStats:
    tokens: int = 0
    elapsed_seconds: float = 0.0
    tokens_per_second: float = 0.0

    def rounded(self, digits: int = 1) -> "TurnStats":
        return TurnStats(
            tokens=self.tokens,
            elapsed_seconds=round(self.elapsed_seconds, digits),
            tokens_per_second=round(self.tokens_per_second, digits),
        )


@dataclass(frozen=True)
class AssistantTurn:
    """State of one in-flight assistant response."""

    phase: TurnPhase = TurnPhase.IDLE
    text: str = ""
    local_tokens: int = 0
    reported_tokens: int | None = None
    stream_started_at: float | None = None
    first_token_at: float | None = None
    stats: TurnStats = field(default_factory=TurnStats)
    error: str | None = None

    @property
    def token_count(self) -> int:
        """Usage-reported count when the relay sent one, else the local count."""
        if self.reported_tokens is not None:
            return self.reported_tokens
        return self.local_tokens

    @property
    def finalized(self) -> bool:
        return self.phase is TurnPhase.FINALIZED

    def start(self, now: float) -> "AssistantTurn":
        if self.phase is not TurnPhase.IDLE:
            raise TurnStateError(f"Cannot start a turn in phase {self.phase.value}")
        return replace(self, phase=TurnPhase.STREAMING, stream_started_at=now)

    def apply(
        self, frame: ContentDelta | UsageRecord | ErrorNotice | Done, now: float
    ) -> "AssistantTurn":
        """Return the turn after *frame* arrived at *now*."""
        self._require_streaming()
        if isinstance(frame, ContentDelta):
            return self._on_content(frame.text, now)
        if isinstance(frame, UsageRecord):
            if frame.completion_tokens is None:
                return self
            return replace(self, reported_tokens=frame.completion_tokens)
        if isinstance(frame, ErrorNotice):
            return self.fail(f"{STREAM_INTERRUPTED_PREFIX}{frame.message}", now)
        if isinstance(frame, Done):
            return self.finish(now)
        raise TypeError(f"Unknown frame type: {type(frame).__name__}")

    def finish(self, now: float) -> "AssistantTurn":
        """Freeze final stats.

        Throughput is measured from the first token so connection and
        queueing latency are excluded; without any token the whole
        stream duration is used.
        """
        self._require_streaming()
        tokens = self.token_count
        if self.first_token_at is not None and tokens > 0:
            elapsed = now - self.first_token_at
        elif self.stream_started_at is not None:
            elapsed = now - self.stream_started_at
        else:
            elapsed = 0.0
        elapsed = safe_elapsed(elapsed)
        stats = TurnStats(
            tokens=tokens,
            elapsed_seconds=elapsed,
            tokens_per_second=tokens_per_second(tokens, elapsed),
        )
        return replace(self, phase=TurnPhase.FINALIZED, stats=stats)

    def fail(self, message: str, now: float) -> "AssistantTurn":
        """Finalize with an error, keeping any text already received."""
        self._require_streaming()
        return replace(self, phase=TurnPhase.FINALIZED, error=message)

    def _on_content(self, text: str, now: float) -> "AssistantTurn":
        if not text:
            return self
        first_token_at = self.first_token_at if self.first_token_at is not None else now
        turn = replace(
            self,
            text=self.text + text,
            local_tokens=self.local_tokens + count_words(text),
            first_token_at=first_token_at,
        )
        elapsed = now - first_token_at
        # No rate until time has passed since the first token.
        live = TurnStats(
            tokens=turn.token_count,
            elapsed_seconds=elapsed,
            tokens_per_second=tokens_per_second(turn.token_count, elapsed)
            if turn.token_count and elapsed > 0
            else 0.0,
        )
        return replace(turn, stats=live.rounded(1))

    def _require_streaming(self) -> None:
        if self.phase is TurnPhase.FINALIZED:
            raise TurnFinalizedError("Turn is already finalized")
        if self.phase is not TurnPhase.STREAMING:
            raise TurnStateError("Turn has not started streaming")


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------

Sender = Literal["user", "assistant"]

_entry_ids = count(1)


def new_entry_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{next(_entry_ids)}"


@dataclass(frozen=True)
class TranscriptEntry:
    sender: Sender
    content: str
    id: str
    stats: TurnStats | None = None
    final: bool = True
    is_error: bool = False


class Transcript:
    """Visible conversation; only the trailing placeholder may change."""

    def __init__(self) -> None:
        self.entries: list[TranscriptEntry] = []

    def append(self, entry: TranscriptEntry) -> None:
        self.entries.append(entry)

    def replace_last(self, entry: TranscriptEntry) -> None:
        if not self.entries:
            raise TurnStateError("Transcript is empty")
        last = self.entries[-1]
        if last.final:
            raise TurnFinalizedError(f"Entry {last.id} is finalized")
        if last.id != entry.id:
            raise TurnStateError(f"Entry {entry.id} is not the open placeholder")
        self.entries[-1] = entry

    def history(self) -> list[ChatMessage]:
        """Messages to send upstream: finalized, non-error, non-empty entries."""
        return [
            ChatMessage(role=e.sender, content=e.content)
            for e in self.entries
            if e.final and not e.is_error and e.content
        ]

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


# ---------------------------------------------------------------------------
# Consumer
# ---------------------------------------------------------------------------


class StreamConsumer:
    """Drives one assistant turn from a frame stream into a transcript."""

    def __init__(
        self,
        transcript: Transcript,
        clock: Callable[[], float] = time.monotonic,
        on_update: Callable[[AssistantTurn], None] | None = None,
    ) -> None:
        self.transcript = transcript
        self.clock = clock
        self.on_update = on_update

    async def run_turn(
        self,
        frames: AsyncGenerator[ContentDelta | UsageRecord | ErrorNotice | Done, None],
    ) -> AssistantTurn:
        turn = AssistantTurn().start(self.clock())
        entry_id = new_entry_id("msg")
        self.transcript.append(
            TranscriptEntry(sender="assistant", content="", id=entry_id, final=False)
        )

        try:
            async with aclosing(frames):
                async for frame in frames:
                    turn = turn.apply(frame, self.clock())
                    self._publish(turn, entry_id)
                    if turn.finalized:
                        break
        except RelayHTTPError as e:
            logger.error("Relay refused request: %s", e)
            turn = turn.fail(describe_http_status(e.status_code), self.clock())
        except ClientTransportError as e:
            logger.error("Error reading stream: %s", e)
            turn = turn.fail(STREAM_READ_ERROR_MESSAGE, self.clock())

        if not turn.finalized:
            # Stream ended without a terminal record.
            turn = turn.finish(self.clock())

        self._finalize(turn, entry_id)
        return turn

    def _publish(self, turn: AssistantTurn, entry_id: str) -> None:
        if not turn.finalized:
            self.transcript.replace_last(
                TranscriptEntry(
                    sender="assistant",
                    content=turn.text,
                    id=entry_id,
                    stats=turn.stats,
                    final=False,
                )
            )
        if self.on_update:
            self.on_update(turn)

    def _finalize(self, turn: AssistantTurn, entry_id: str) -> None:
        if turn.error is not None and not turn.text:
            self.transcript.replace_last(
                TranscriptEntry(
                    sender="assistant", content=turn.error, id=entry_id, is_error=True
                )
            )
            return

        self.transcript.replace_last(
            TranscriptEntry(
                sender="assistant",
                content=turn.text,
                id=entry_id,
                stats=turn.stats if turn.error is None else None,
            )
        )
        if turn.error is not None:
            self.transcript.append(
                TranscriptEntry(
                    sender="assistant",
                    content=turn.error,
                    id=new_entry_id("err"),
                    is_error=True,
                )
            )
