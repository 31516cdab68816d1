"""Tests for prompt capture from the delimiter or the selection."""

from __future__ import annotations

import pytest

from aissist.documents.markers import Role, encode_turn
from aissist.documents.prompt import extract_prompt, find_prompt_start, locate_prompt
from aissist.editor.buffer import Position, TextBuffer
from aissist.errors import MissingPromptDelimiter

from helpers import TIMESTAMP


def test_last_delimiter_starts_the_prompt() -> None:
    text = "// old question\nanswer\n//new question"

    start, content = locate_prompt(text, len(text), "//")

    assert start == text.rindex("//")
    assert content == "new question"


def test_delimiter_after_cursor_is_ignored() -> None:
    text = "//first\n//second"

    _, content = locate_prompt(text, len("//first"), "//")

    assert content == "first"


def test_delimiter_only_inside_fence_raises() -> None:
    text = "```\n// comment in code\n```\nplain text"

    with pytest.raises(MissingPromptDelimiter) as info:
        locate_prompt(text, len(text), "//")

    assert info.value.user_message() == (
        'No prompt found! Either select the prompt, or prepend it with "//"'
    )


def test_delimiter_inside_fence_is_skipped_for_earlier_one() -> None:
    text = "//ask about this\n```js\nconst x = 1; // note\n```\n"

    start, content = locate_prompt(text, len(text), "//")

    assert start == 0
    assert content.startswith("ask about this")


def test_repeated_delimiter_characters_do_not_overlap() -> None:
    assert find_prompt_start("///", "//") == 0
    assert find_prompt_start("a//b////c", "//") == 6
    assert find_prompt_start("anything", "") == -1


def test_extract_replaces_delimiter_span_and_moves_cursor() -> None:
    buffer = TextBuffer("intro\n//what is 2+2")

    captured = extract_prompt(buffer, "//", timestamp=TIMESTAMP)

    block = encode_turn(Role.USER, "what is 2+2", timestamp=TIMESTAMP)
    assert captured.content == "what is 2+2"
    assert buffer.get_value() == "intro\n" + block
    assert captured.end == Position(3, 0)
    assert buffer.get_cursor() == Position(3, 0)


def test_extract_keeps_text_after_cursor() -> None:
    text = "//question\nlater notes"
    buffer = TextBuffer(text, cursor=len("//question"))

    extract_prompt(buffer, "//", timestamp=TIMESTAMP)

    block = encode_turn(Role.USER, "question", timestamp=TIMESTAMP)
    assert buffer.get_value() == block + "\nlater notes"
    assert buffer.get_cursor() == Position(2, 0)


def test_mid_line_delimiter_starts_block_on_new_line() -> None:
    buffer = TextBuffer("Some text //tell me more")

    extract_prompt(buffer, "//", timestamp=TIMESTAMP)

    assert buffer.get_value() == "Some text \n" + encode_turn(Role.USER, "tell me more", timestamp=TIMESTAMP)
    assert buffer.get_cursor() == Position(3, 0)


def test_missing_delimiter_leaves_document_untouched() -> None:
    buffer = TextBuffer("no prompt here")

    with pytest.raises(MissingPromptDelimiter):
        extract_prompt(buffer, "//", timestamp=TIMESTAMP)

    assert buffer.get_value() == "no prompt here"


def test_selection_is_encoded_in_place() -> None:
    text = "before\nSummarize this\nafter"
    buffer = TextBuffer(text)
    start = text.index("Summarize")
    buffer.select(start, start + len("Summarize this"))

    captured = extract_prompt(buffer, "//", timestamp=TIMESTAMP)

    block = encode_turn(Role.USER, "Summarize this", timestamp=TIMESTAMP)
    assert captured.from_selection is True
    assert buffer.get_value() == "before\n" + block + "\nafter"
    assert buffer.get_cursor() == Position(3, 0)


def test_selection_and_delimiter_produce_identical_blocks() -> None:
    selected = TextBuffer("  explain monads  ")
    selected.select(0, len("  explain monads  "))
    delimited = TextBuffer("//  explain monads  ")

    from_selection = extract_prompt(selected, "//", timestamp=TIMESTAMP)
    from_delimiter = extract_prompt(delimited, "//", timestamp=TIMESTAMP)

    assert from_selection.block == from_delimiter.block
    assert selected.get_value() == delimited.get_value()


def test_mid_line_selection_starts_block_on_new_line() -> None:
    buffer = TextBuffer("See: explain this")
    buffer.select(len("See: "), len("See: explain this"))

    captured = extract_prompt(buffer, "//", timestamp=TIMESTAMP)

    assert captured.block.startswith("\n> %% AIssist; role:user;")
    assert buffer.get_value() == "See: " + captured.block
