"""Tests for the conversation decoder and window policy."""

from __future__ import annotations

import pytest

from aissist.documents.conversation import apply_window, clean_content, decode_conversation, decode_turns
from aissist.documents.markers import Role, Turn, encode_reply, encode_turn
from aissist.documents.scanner import scan
from aissist.errors import MalformedTurnBlock
from aissist.documents.conversation import turn_from_token

from helpers import TIMESTAMP


def _conversation(system: int, exchanges: int) -> tuple[str, list[Turn]]:
    parts: list[str] = []
    turns: list[Turn] = []
    for index in range(system):
        parts.append(encode_turn(Role.SYSTEM, f"rule {index}", timestamp=TIMESTAMP))
        turns.append(Turn(Role.SYSTEM, f"rule {index}"))
    for index in range(exchanges):
        if index % 2 == 0:
            parts.append(encode_turn(Role.USER, f"question {index}", timestamp=TIMESTAMP))
            turns.append(Turn(Role.USER, f"question {index}"))
        else:
            parts.append(encode_reply(f"answer {index}", timestamp=TIMESTAMP))
            turns.append(Turn(Role.ASSISTANT, f"answer {index}"))
    return "".join(parts), turns


def test_empty_document_has_no_turns() -> None:
    assert decode_turns("") == []
    assert decode_conversation("just some notes", 10) == []


def test_decodes_turns_in_document_order() -> None:
    text, expected = _conversation(1, 4)

    assert decode_turns(text) == expected


def test_twelve_turns_windowed_to_five_keep_system_turn() -> None:
    text, turns = _conversation(1, 11)

    decoded = decode_conversation(text, 5)

    assert len(decoded) == 5
    assert decoded[0] == turns[0]
    assert decoded[1:] == turns[-4:]


def test_window_keeps_system_turns_wherever_they_appear() -> None:
    turns = [
        Turn(Role.USER, "u1"),
        Turn(Role.SYSTEM, "s1"),
        Turn(Role.ASSISTANT, "a1"),
        Turn(Role.USER, "u2"),
        Turn(Role.SYSTEM, "s2"),
        Turn(Role.ASSISTANT, "a2"),
    ]

    assert apply_window(turns, 4) == [
        Turn(Role.SYSTEM, "s1"),
        Turn(Role.SYSTEM, "s2"),
        Turn(Role.USER, "u2"),
        Turn(Role.ASSISTANT, "a2"),
    ]


def test_window_with_more_system_turns_than_limit_keeps_first_ones() -> None:
    turns = [Turn(Role.SYSTEM, f"s{index}") for index in range(4)] + [Turn(Role.USER, "u")]

    assert apply_window(turns, 2) == [Turn(Role.SYSTEM, "s0"), Turn(Role.SYSTEM, "s1")]


def test_window_is_noop_under_limit() -> None:
    turns = [Turn(Role.USER, "u"), Turn(Role.ASSISTANT, "a")]

    assert apply_window(turns, 10) == turns
    assert apply_window(turns, None) == turns


def test_unknown_role_is_skipped_but_ends_previous_content() -> None:
    text = (
        encode_turn(Role.USER, "hello", timestamp=TIMESTAMP)
        + "%% AIssist; role:narrator; t %% aside\n"
        + encode_reply("hi there", timestamp=TIMESTAMP)
    )

    assert decode_turns(text) == [Turn(Role.USER, "hello"), Turn(Role.ASSISTANT, "hi there")]


def test_turn_from_token_raises_for_unknown_role() -> None:
    token = scan("%% AIssist; role:narrator; t %%").markers[0]

    with pytest.raises(MalformedTurnBlock) as info:
        turn_from_token(token)

    assert info.value.role == "narrator"
    assert info.value.offset == 0


def test_markers_inside_code_fences_are_text() -> None:
    sample = "```\n%% AIssist; role:assistant; t %% fake\n```"
    text = encode_turn(Role.USER, "look at this", timestamp=TIMESTAMP) + sample + "\n"

    turns = decode_turns(text)

    assert len(turns) == 1
    assert turns[0].role is Role.USER
    assert "fake" in turns[0].content


def test_reply_content_runs_until_next_block() -> None:
    text = (
        encode_reply("first line\n\nsecond paragraph", timestamp=TIMESTAMP)
        + "\n"
        + encode_turn(Role.USER, "next", timestamp=TIMESTAMP)
    )

    turns = decode_turns(text)

    assert turns[0] == Turn(Role.ASSISTANT, "first line\n\nsecond paragraph")
    assert turns[1] == Turn(Role.USER, "next")


@pytest.mark.parametrize(
    "raw, expected",
    [
        (":technologist:\n> hello\n", "hello"),
        ("> a\n>\n> b\n>", "a\n\nb"),
        ("  plain text  ", "plain text"),
        ("> quoted\nnot quoted", "quoted\nnot quoted"),
        ("> first\n> second\nnote", "first\nsecond\nnote"),
        ("answer ends here>", "answer ends here"),
    ],
)
def test_clean_content(raw: str, expected: str) -> None:
    assert clean_content(raw) == expected


def test_user_turn_followed_by_plain_notes_is_unquoted() -> None:
    text = encode_turn(Role.USER, "what is 2+2", timestamp=TIMESTAMP) + "my own note\n"

    turns = decode_turns(text)

    assert turns == [Turn(Role.USER, "what is 2+2\nmy own note")]


def test_reply_opening_with_blockquote_loses_leading_prefix() -> None:
    text = encode_reply("> quoted line\nplain", timestamp=TIMESTAMP)

    content = decode_turns(text)[0].content

    assert not content.startswith(">")
    assert content == "quoted line\nplain"
