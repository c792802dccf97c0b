"""Tests for nightly.core.result module."""

from __future__ import annotations

import pytest

from nightly.core.result import Err, Ok, Result, is_err, is_ok


class TestOk:
    def test_value(self) -> None:
        result = Ok(42)
        assert result.value == 42
        assert result.is_ok()
        assert not result.is_err()

    def test_unwrap(self) -> None:
        assert Ok("x").unwrap() == "x"
        assert Ok("x").unwrap_or("y") == "x"

    def test_map(self) -> None:
        assert Ok(2).map(lambda v: v * 3) == Ok(6)

    def test_map_err_is_noop(self) -> None:
        result = Ok(1)
        assert result.map_err(str) is result


class TestErr:
    def test_error(self) -> None:
        result = Err("boom")
        assert result.error == "boom"
        assert result.is_err()
        assert not result.is_ok()

    def test_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="boom"):
            Err("boom").unwrap()

    def test_unwrap_or(self) -> None:
        assert Err("boom").unwrap_or(7) == 7

    def test_map_err(self) -> None:
        assert Err(2).map_err(lambda e: e + 1) == Err(3)


class TestPatternMatching:
    def _describe(self, result: Result[int, str]) -> str:
        match result:
            case Ok(value):
                return f"ok {value}"
            case Err(error):
                return f"err {error}"

    def test_match_ok(self) -> None:
        assert self._describe(Ok(1)) == "ok 1"

    def test_match_err(self) -> None:
        assert self._describe(Err("no")) == "err no"


def test_type_guards() -> None:
    ok: Result[int, str] = Ok(1)
    err: Result[int, str] = Err("e")
    assert is_ok(ok) and not is_err(ok)
    assert is_err(err) and not is_ok(err)
