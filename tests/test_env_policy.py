from __future__ import annotations

import pytest

from helpcheck.exceptions import ConfigError
from helpcheck.runtime import env_policy
from tests.env_helpers import env_scope


@pytest.mark.parametrize(
    ("text", "expected_ns"),
    [
        ("1ns", 1),
        ("250ms", 250_000_000),
        ("1.5s", 1_500_000_000),
        ("1m30s", 90_000_000_000),
        ("2h", 7_200_000_000_000),
    ],
)
def test_parse_duration_to_ns(text: str, expected_ns: int) -> None:
    assert env_policy.parse_duration_to_ns(text) == expected_ns


@pytest.mark.parametrize("text", ["", "10", "ten s", "0s", "5x"])
def test_parse_duration_rejects_invalid_text(text: str) -> None:
    with pytest.raises(ConfigError):
        env_policy.parse_duration_to_ns(text)


def test_parse_duration_to_seconds() -> None:
    assert env_policy.parse_duration_to_seconds("1500ms") == 1.5


def test_inspector_from_env() -> None:
    with env_scope({env_policy.INSPECTOR_ENV: "  pkg.mod:Inspector "}):
        assert env_policy.inspector_from_env() == "pkg.mod:Inspector"
    with env_scope({env_policy.INSPECTOR_ENV: None}):
        assert env_policy.inspector_from_env() is None


def test_parse_positive_int_text() -> None:
    assert env_policy.parse_positive_int_text(" 3 ", field="jobs") == 3
    with pytest.raises(ConfigError):
        env_policy.parse_positive_int_text("0", field="jobs")
