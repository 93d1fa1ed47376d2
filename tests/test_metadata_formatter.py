"""Tests for title and preview derivation."""

import pytest

from src.db.models import UNTITLED_TITLE
from src.services.metadata_formatter import (
    ELLIPSIS,
    PREVIEW_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    derive_preview,
    code_units,
    derive_title,
    normalize_text,
)


class TestNormalizeText:
    """Test whitespace normalization."""

    def test_collapses_whitespace_runs(self):
        assert normalize_text("  buy\n\nmilk \t and   eggs ") == "buy milk and eggs"

    def test_none_becomes_empty(self):
        assert normalize_text(None) == ""


class TestDeriveTitle:
    """Test title derivation."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\t \n"])
    def test_blank_input_gives_untitled(self, text):
        assert derive_title(text) == UNTITLED_TITLE

    def test_short_text_is_kept(self):
        assert derive_title("Groceries for Sunday") == "Groceries for Sunday"

    def test_newlines_are_flattened(self):
        assert derive_title("line one\nline two") == "line one line two"

    def test_exact_max_length_is_not_truncated(self):
        text = "a" * TITLE_MAX_LENGTH
        assert derive_title(text) == text

    def test_one_over_max_length_is_truncated(self):
        text = "b" * (TITLE_MAX_LENGTH + 1)
        title = derive_title(text)
        assert title == "b" * TITLE_MAX_LENGTH + ELLIPSIS
        assert len(title) == TITLE_MAX_LENGTH + 1

    def test_length_counted_after_normalization(self):
        text = "  " + "c" * TITLE_MAX_LENGTH + "   \n"
        assert derive_title(text) == "c" * TITLE_MAX_LENGTH

    def test_astral_characters_count_as_two_units(self):
        text = "\U0001F600" * (TITLE_MAX_LENGTH // 2)
        assert code_units(text) == TITLE_MAX_LENGTH
        assert derive_title(text) == text

    def test_clip_does_not_split_astral_character(self):
        text = "a" + "\U0001F600" * (TITLE_MAX_LENGTH // 2)
        assert derive_title(text) == "a" + "\U0001F600" * (TITLE_MAX_LENGTH // 2 - 1) + ELLIPSIS

    def test_is_deterministic(self):
        text = "明日の会議  資料を\n準備する"
        assert derive_title(text) == derive_title(text)


class TestDerivePreview:
    """Test preview derivation."""

    def test_blank_input_gives_empty_preview(self):
        assert derive_preview("  \n ") == ""

    def test_exact_max_length_is_not_truncated(self):
        text = "p" * PREVIEW_MAX_LENGTH
        assert derive_preview(text) == text

    def test_long_text_is_clipped(self):
        text = "word " * 30
        preview = derive_preview(text)
        assert preview.endswith(ELLIPSIS)
        assert len(preview) == PREVIEW_MAX_LENGTH + 1

    def test_preview_is_longer_than_title(self):
        text = "x" * 100
        assert len(derive_preview(text)) > len(derive_title(text))

    def test_is_deterministic(self):
        text = "first line\nsecond line"
        assert derive_preview(text) == derive_preview(text) == "first line second line"
