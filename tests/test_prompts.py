"""Tests for title sanitizing."""

from __future__ import annotations

import pytest

from aissist.ai.prompts import TITLE_MAX_LENGTH, sanitize_title


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Weekly planning", "Weekly planning"),
        ("  'Quoted title'  ", "Quoted title"),
        ("\n\nFirst line\nSecond line", "First line"),
        ('A/B: "tests" <draft>|?*', "AB tests draft"),
        ("Many    spaces", "Many spaces"),
        ("", ""),
    ],
)
def test_sanitize_title(raw: str, expected: str) -> None:
    assert sanitize_title(raw) == expected


def test_sanitize_title_truncates() -> None:
    title = sanitize_title("word " * 40)

    assert len(title) <= TITLE_MAX_LENGTH
    assert not title.endswith(" ")
