"""Main CLI loop for interactive chat."""

import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from relaychat.core.messages import ROLE_SYSTEM, ChatMessage

from .client import ChatAPIClient, ClientTransportError, RelayHTTPError
from .config import CLIConfig
from .consumer import (
    AssistantTurn,
    StreamConsumer,
    Transcript,
    TranscriptEntry,
    new_entry_id,
)
from .formatter import ResponseFormatter
from .prefs import FilePreferencesStore, MemoryPreferencesStore, Preferences

logger = logging.getLogger(__name__)

EXIT_WORDS = ("exit", "quit", "q")


class RelayCLI:
    """Interactive CLI for the chat relay."""

    def __init__(
        self,
        config: CLIConfig,
        preferences: Preferences,
        input_stream: TextIO = sys.stdin,
        output_stream: TextIO = sys.stdout,
        client: ChatAPIClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        show_live_stats: bool = False,
    ):
        """Initialize the CLI.

        Parameters
        ----------
        config
            CLI configuration.
        preferences
            Credential and model store shared with the settings commands.
        input_stream
            Input stream for user input (default: stdin).
        output_stream
            Output stream for responses (default: stdout).
        client
            API client (default: one built from *config*).
        clock
            Monotonic clock used for throughput measurement.
        show_live_stats
            Whether to print live throughput while streaming.
        """
        self.config = config
        self.preferences = preferences
        self.input_stream = input_stream
        self.output_stream = output_stream
        self.client = client or ChatAPIClient(config)
        self.clock = clock
        self.show_live_stats = show_live_stats
        self.transcript = Transcript()

    async def run(self) -> None:
        """Run the interactive CLI loop."""
        try:
            self._print_welcome()
            while True:
                try:
                    line = self._get_user_input()
                    if not line.strip():
                        continue

                    if line.strip().lower() in EXIT_WORDS:
                        self._print("Goodbye!\n")
                        break

                    if line.startswith("/"):
                        await self._handle_command(line)
                        continue

                    await self.send(line)

                except KeyboardInterrupt:
                    self._print("\n\nInterrupted. Use 'exit' or 'quit' to exit.\n")
                except EOFError:
                    self._print("\nGoodbye!\n")
                    break
        finally:
            await self.client.close()

    async def send(self, text: str) -> AssistantTurn | None:
        """Run one turn: record the user message and stream the answer."""
        credential = self.preferences.credential
        if not credential:
            self._print("API key not found. Set one with /key <your-api-key>.\n")
            return None
        model = self.preferences.model

        self.transcript.append(
            TranscriptEntry(sender="user", content=text, id=new_entry_id("user"))
        )
        messages = [
            ChatMessage(role=ROLE_SYSTEM, content=self.config.system_prompt),
            *self.transcript.history(),
        ]

        formatter = ResponseFormatter(self.output_stream, self.show_live_stats)
        consumer = StreamConsumer(
            self.transcript, clock=self.clock, on_update=formatter.handle_update
        )
        turn = await consumer.run_turn(
            self.client.stream_frames(messages, model, credential)
        )
        formatter.finish_response(turn)
        self._print("\n")
        return turn

    async def _handle_command(self, line: str) -> None:
        command, _, argument = line.strip().partition(" ")
        argument = argument.strip()

        if command == "/model":
            if argument:
                self.preferences.model = argument
            self._print(f"Model: {self.preferences.model}\n")
        elif command == "/models":
            await self._print_models()
        elif command == "/key":
            if not argument:
                self._print("Usage: /key <your-api-key>\n")
                return
            self.preferences.credential = argument
            self._print("API key saved.\n")
        elif command == "/clear":
            self.transcript.clear()
            self._print("Conversation cleared.\n")
        else:
            self._print(
                "Commands: /model [id], /models, /key <api-key>, /clear, exit\n"
            )

    async def _print_models(self) -> None:
        try:
            catalog = await self.client.list_models()
        except (RelayHTTPError, ClientTransportError) as e:
            self._print(f"❌ Could not fetch models: {e}\n")
            return
        current = self.preferences.model
        for info in catalog.get("models", []):
            marker = "*" if info.get("id") == current else " "
            self._print(f" {marker} {info.get('id')}  ({info.get('name')})\n")

    def _get_user_input(self) -> str:
        """Get user input from the input stream."""
        self._print("> ")
        line = self.input_stream.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n\r")

    def _print_welcome(self) -> None:
        """Print welcome message."""
        self._print("relaychat - Interactive Chat Interface\n")
        self._print(f"Connected to: {self.config.chat_url}\n")
        self._print(f"Model: {self.preferences.model}\n")
        self._print(
            "Type your message and press Enter. Type /help for commands, "
            "'exit' or 'quit' to exit.\n\n"
        )

    def _print(self, text: str) -> None:
        """Print text to output stream."""
        self.output_stream.write(text)
        self.output_stream.flush()


async def main(
    host: str = "localhost",
    port: int = 8000,
    api_path: str = "/api",
    model: str | None = None,
    prefs_file: str | None = None,
    persist: bool = True,
    debug: bool = False,
    live_stats: bool = False,
) -> None:
    """Main entry point for the CLI.

    Parameters
    ----------
    host
        Server host.
    port
        Server port.
    api_path
        API path.
    model
        Model to select before the first turn.
    prefs_file
        Preferences file path (default: per-user config directory).
    persist
        Keep preferences on disk; otherwise only for this session.
    debug
        Enable debug logging.
    live_stats
        Print live throughput while streaming.
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    config = CLIConfig(host=host, port=port, api_path=api_path)

    if not persist:
        store = MemoryPreferencesStore()
    elif prefs_file:
        store = FilePreferencesStore(Path(prefs_file))
    else:
        store = FilePreferencesStore()
    preferences = Preferences(store)
    if model:
        preferences.model = model

    cli = RelayCLI(config, preferences, show_live_stats=live_stats)
    await cli.run()
