"""Tests for nostrfeed.models._validation shared helpers."""

from __future__ import annotations

import math

import pytest

from nostrfeed.models._validation import (
    validate_hex,
    validate_instance,
    validate_score,
    validate_str_no_null,
    validate_str_not_empty,
    validate_timestamp,
)


class TestValidateInstance:
    def test_accepts(self) -> None:
        validate_instance("x", str, "name")

    def test_article(self) -> None:
        with pytest.raises(TypeError, match="name must be an int, got str"):
            validate_instance("x", int, "name")
        with pytest.raises(TypeError, match="name must be a str, got int"):
            validate_instance(1, str, "name")


class TestValidateTimestamp:
    @pytest.mark.parametrize("value", [0, 1, 1_700_000_000])
    def test_accepts(self, value: int) -> None:
        validate_timestamp(value, "ts")

    @pytest.mark.parametrize("value", [True, 1.0, "1", None])
    def test_type(self, value: object) -> None:
        with pytest.raises(TypeError):
            validate_timestamp(value, "ts")

    def test_negative(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            validate_timestamp(-1, "ts")


class TestValidateStrings:
    def test_no_null_accepts_empty(self) -> None:
        validate_str_no_null("", "s")

    def test_no_null_rejects_null(self) -> None:
        with pytest.raises(ValueError, match="null bytes"):
            validate_str_no_null("a\x00", "s")

    def test_not_empty(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            validate_str_not_empty("", "s")

    def test_not_str(self) -> None:
        with pytest.raises(TypeError):
            validate_str_not_empty(b"abc", "s")


class TestValidateHex:
    def test_accepts(self) -> None:
        validate_hex("ab" * 32, "id", 64)

    def test_length(self) -> None:
        with pytest.raises(ValueError, match="64 hex characters, got 2"):
            validate_hex("ab", "id", 64)

    def test_uppercase(self) -> None:
        with pytest.raises(ValueError, match="lowercase hex"):
            validate_hex("AB", "id")

    def test_any_length(self) -> None:
        validate_hex("abc", "id")


class TestValidateScore:
    @pytest.mark.parametrize("value", [0, -3, 2.5])
    def test_accepts(self, value: float) -> None:
        validate_score(value, "score")

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite(self, value: float) -> None:
        with pytest.raises(ValueError, match="finite"):
            validate_score(value, "score")

    @pytest.mark.parametrize("value", [False, "1", None])
    def test_type(self, value: object) -> None:
        with pytest.raises(TypeError):
            validate_score(value, "score")
