"""Main CLI loop for interactive chat."""

import logging
import sys
from typing import TextIO

from chatloop.core.session import ChatSession, StopReason

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit", "q")

_STOP_NOTICES = {
    StopReason.CONTEXT_EXHAUSTED: "[context window full]",
    StopReason.LENGTH: "[reply truncated]",
}


class ChatLoopCLI:
    """Interactive terminal chat driving a ``ChatSession`` step by step."""

    def __init__(
        self,
        session: ChatSession,
        input_stream: TextIO = sys.stdin,
        output_stream: TextIO = sys.stdout,
        max_pieces: int | None = None,
    ):
        """Initialize the CLI.

        Parameters
        ----------
        session
            Session to drive; the CLI does not close it.
        input_stream
            Input stream for user input (default: stdin).
        output_stream
            Output stream for responses (default: stdout).
        max_pieces
            Optional cap on pieces generated per reply.
        """
        self.session = session
        self.input_stream = input_stream
        self.output_stream = output_stream
        self.max_pieces = max_pieces

    def run(self) -> None:
        """Run the interactive CLI loop."""
        self._print_welcome()
        while True:
            try:
                query = self._get_user_input()
                if not query.strip():
                    continue

                if query.strip().lower() in EXIT_COMMANDS:
                    self._print("Goodbye!\n")
                    break

                self._process_query(query)

            except KeyboardInterrupt:
                self._print("\n\nInterrupted. Use 'exit' or 'quit' to exit.\n")
            except EOFError:
                self._print("\nGoodbye!\n")
                break

    def _process_query(self, query: str) -> None:
        """Stream one assistant reply for *query*."""
        replies = self.session.generate(query, max_pieces=self.max_pieces)
        self._print("\n")
        try:
            for piece in replies:
                self._print(piece)
        except KeyboardInterrupt:
            # Closing the generator cancels the turn and frees the batch.
            replies.close()
            self._print("\n[reply cancelled]\n\n")
            return

        logger.debug("Reply finished (%s)", self.session.stop_reason)
        notice = _STOP_NOTICES.get(self.session.stop_reason)
        if notice:
            self._print(f"\n{notice}")
        self._print("\n\n")

    def _get_user_input(self) -> str:
        """Get user input from the input stream."""
        self._print("> ")
        line = self.input_stream.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n\r")

    def _print_welcome(self) -> None:
        """Print welcome message."""
        self._print("chatloop - interactive chat\n")
        self._print(
            f"Context window: {self.session.context_capacity} tokens "
            f"({self.session.context_used} used)\n"
        )
        self._print(
            "Type your message and press Enter. Type 'exit' or 'quit' to exit.\n\n"
        )

    def _print(self, text: str) -> None:
        """Print text to output stream."""
        self.output_stream.write(text)
        self.output_stream.flush()
