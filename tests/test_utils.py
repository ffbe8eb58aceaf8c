"""Tests for env-style parsing helpers (talking_timer/utils.py)."""

from __future__ import annotations

import asyncio

import pytest

from talking_timer.utils import await_with_timeout, parse_bool, parse_int, split_csv


@pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
def test_parse_bool_truthy(value):
    assert parse_bool(value) is True


def test_parse_bool_default_and_falsy():
    assert parse_bool(None, True) is True
    assert parse_bool("off", True) is False


def test_parse_int():
    assert parse_int("42", 0) == 42
    assert parse_int("4.2", 7) == 7
    assert parse_int(None, 7) == 7


def test_split_csv():
    assert split_csv(" a, ,b ,c") == ["a", "b", "c"]
    assert split_csv(None) == []


@pytest.mark.anyio
async def test_await_with_timeout_passes_result():
    async def _value():
        return 5

    assert await await_with_timeout(_value(), None) == 5
    assert await await_with_timeout(_value(), 1.0) == 5


@pytest.mark.anyio
async def test_await_with_timeout_times_out():
    with pytest.raises(asyncio.TimeoutError):
        await await_with_timeout(asyncio.sleep(1), 0.01)
