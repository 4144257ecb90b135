# pylint: disable=missing-module-docstring,missing-function-docstring

from context.transcript import TranscriptAccumulator


def test_complete_turn_returns_trimmed_text_and_clears() -> None:
    acc = TranscriptAccumulator()
    acc.append_input(" add a ")
    acc.append_input("task ")
    acc.append_output("Sure.")

    turn = acc.complete_turn()

    assert turn.user_text == "add a task"
    assert turn.assistant_text == "Sure."
    assert acc.input_text == ""
    assert acc.output_text == ""


def test_whitespace_only_channel_is_not_emitted() -> None:
    acc = TranscriptAccumulator()
    acc.append_output("   ")

    turn = acc.complete_turn()

    assert turn.is_empty
    assert acc.output_text == ""


def test_interrupt_discards_without_emitting() -> None:
    acc = TranscriptAccumulator()
    acc.append_output("hello wor")

    discarded = acc.interrupt()

    assert discarded == ("", "hello wor")
    assert acc.complete_turn().is_empty
