"""
Transcript accumulation.

Responsibilities:
- Accumulate partial transcription text for the in-flight turn on two
  independent channels: input (user) and output (assistant)
- Finalize on turnComplete, discard on interrupted

Non-responsibilities:
- No callbacks (the orchestrator decides where finalized text goes)
- No persistence
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FinalizedTurn:
    """
    Texts flushed by one turnComplete.

    A channel that accumulated nothing (or only whitespace) is None.
    """
    user_text: str | None
    assistant_text: str | None

    @property
    def is_empty(self) -> bool:
        return self.user_text is None and self.assistant_text is None


class TranscriptAccumulator:
    """
    Two accumulating buffers, reset together on every terminal event.

    Invariant:
    - Both buffers are empty after complete_turn(), interrupt(), or reset().
    """

    def __init__(self) -> None:
        self._input: list[str] = []
        self._output: list[str] = []

    @property
    def input_text(self) -> str:
        return "".join(self._input)

    @property
    def output_text(self) -> str:
        return "".join(self._output)

    def append_input(self, text: str) -> None:
        if text:
            self._input.append(text)

    def append_output(self, text: str) -> None:
        if text:
            self._output.append(text)

    def complete_turn(self) -> FinalizedTurn:
        """Return the trimmed texts of the turn and clear both buffers."""
        user = self.input_text.strip() or None
        assistant = self.output_text.strip() or None
        self.reset()
        return FinalizedTurn(user_text=user, assistant_text=assistant)

    def interrupt(self) -> tuple[str, str]:
        """
        Discard the in-flight turn.

        Returns the discarded (input, output) text for logging only.
        """
        discarded = (self.input_text, self.output_text)
        self.reset()
        return discarded

    def reset(self) -> None:
        self._input.clear()
        self._output.clear()
