"""Tests for the turn encoder."""

from __future__ import annotations

from datetime import datetime

import pytest

from aissist.documents.conversation import decode_turns
from aissist.documents.markers import (
    USER_GLYPH,
    Role,
    Turn,
    encode_header,
    encode_reply,
    encode_turn,
    format_timestamp,
)

from helpers import TIMESTAMP


def test_user_turn_is_quoted_and_carries_glyph() -> None:
    block = encode_turn(Role.USER, "What is the capital of France?", timestamp=TIMESTAMP)

    assert block == (
        "> %% AIssist; role:user; 2024-05-01T09:30 %%:technologist:\n"
        "> What is the capital of France?\n"
    )


def test_multiline_content_quotes_every_line() -> None:
    block = encode_turn("user", "first\nsecond", timestamp=TIMESTAMP)

    assert block.splitlines() == [
        f"> %% AIssist; role:user; {TIMESTAMP} %%{USER_GLYPH}",
        "> first",
        "> second",
    ]


def test_system_turn_has_no_glyph() -> None:
    block = encode_turn(Role.SYSTEM, "Be brief.", timestamp=TIMESTAMP)

    assert USER_GLYPH not in block
    assert block.startswith(f"> %% AIssist; role:system; {TIMESTAMP} %%\n")


def test_reply_starts_on_fresh_line_with_raw_content() -> None:
    block = encode_reply("Paris.", timestamp=TIMESTAMP)

    assert block == f"\n%% AIssist; role:assistant; {TIMESTAMP} %% Paris.\n"


def test_reply_does_not_double_trailing_newline() -> None:
    assert encode_reply("done\n", timestamp=TIMESTAMP).endswith("done\n")


def test_timestamp_uses_minute_precision_and_real_month() -> None:
    assert format_timestamp(datetime(2024, 1, 9, 7, 5, 59)) == "2024-01-09T07:05"


def test_header_rejects_unknown_role() -> None:
    with pytest.raises(ValueError):
        encode_header("narrator", timestamp=TIMESTAMP)


@pytest.mark.parametrize("role", [Role.SYSTEM, Role.USER, Role.ASSISTANT])
def test_single_turn_decodes_to_same_role_and_content(role: Role) -> None:
    content = "  Line one\nLine two  "
    if role is Role.ASSISTANT:
        text = encode_reply(content, timestamp=TIMESTAMP)
    else:
        text = encode_turn(role, content, timestamp=TIMESTAMP)

    assert decode_turns(text) == [Turn(role, content.strip())]


def test_turn_as_message() -> None:
    assert Turn(Role.USER, "hi").as_message() == {"role": "user", "content": "hi"}
