from __future__ import annotations

import pytest

from ciconvert.core.durations import format_duration, parse_duration


class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "0s"),
            (1.5, "1.5s"),
            (0.3, "300ms"),
            (90, "1m30s"),
            (600, "10m0s"),
            (3600, "1h0m0s"),
            (5400, "1h30m0s"),
            (-60, "-1m0s"),
        ],
    )
    def test_go_style(self, seconds: float, expected: str) -> None:
        assert format_duration(seconds) == expected


class TestParseDuration:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("0", 0.0),
            ("30s", 30.0),
            ("1h30m", 5400.0),
            ("500ms", 0.5),
            ("1.5h", 5400.0),
            ("-2m", -120.0),
            (" 10m ", 600.0),
        ],
    )
    def test_valid(self, text: str, expected: float) -> None:
        assert parse_duration(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "10", "10 minutes", "1d", "m"])
    def test_invalid_raises(self, text: str) -> None:
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(text)

    def test_parsed_value_formats_back(self) -> None:
        assert format_duration(parse_duration("90m")) == "1h30m0s"
