"""Response formatter for displaying a streamed assistant turn."""

from typing import TextIO

from .consumer import AssistantTurn, TurnStats


def format_stats(stats: TurnStats) -> str:
    """Final stats line: rate with two decimals, time with three."""
    return (
        f"⚡ {stats.tokens_per_second:.2f} tokens/s · "
        f"{stats.tokens} tokens · {stats.elapsed_seconds:.3f}s"
    )


class ResponseFormatter:
    """Writes assistant text as it streams, then the stats or error."""

    def __init__(self, output: TextIO, show_live_stats: bool = False):
        """Initialize the formatter.

        Parameters
        ----------
        output
            File-like object to write output to.
        show_live_stats
            Whether to repeat the rounded live throughput after each delta.
        """
        self.output = output
        self.show_live_stats = show_live_stats
        self.printed_chars = 0
        self.content_started = False

    def handle_update(self, turn: AssistantTurn) -> None:
        """Print whatever text arrived since the previous update."""
        new_text = turn.text[self.printed_chars :]
        if not new_text:
            return
        if not self.content_started:
            self._print("\nAssistant:\n")
            self.content_started = True
        self._print(new_text)
        self.printed_chars = len(turn.text)
        if self.show_live_stats and not turn.finalized:
            live = turn.stats
            self._print(
                f" [{live.tokens_per_second} t/s, {live.elapsed_seconds}s]"
            )

    def finish_response(self, turn: AssistantTurn) -> None:
        """Print the closing stats line or the error for a finalized turn."""
        if self.content_started:
            self._print("\n")
        if turn.error is not None:
            self._print(f"\n❌ {turn.error}\n")
        elif turn.stats.tokens:
            self._print(f"\n{format_stats(turn.stats)}\n")
        self.printed_chars = 0
        self.content_started = False

    def _print(self, text: str) -> None:
        """Print text to output."""
        self.output.write(text)
        self.output.flush()
