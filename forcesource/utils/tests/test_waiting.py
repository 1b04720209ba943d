from unittest import mock

import pytest

from forcesource.utils.waiting import poll_until, retry


def test_retry(caplog):
    func = mock.Mock(side_effect=[Exception, 42])
    assert retry(func) == 42
    assert "Sleeping for 5 seconds before retry..." in caplog.text
    assert "Retrying (4 attempts remaining)" in caplog.text


def test_retry__limit():
    func = mock.Mock(side_effect=Exception)
    with pytest.raises(Exception):
        retry(func, retries=0)
    assert func.call_count == 1


def test_retry__should_not_retry():
    func = mock.Mock(side_effect=ValueError)
    with pytest.raises(ValueError):
        retry(func, should_retry=lambda e: not isinstance(e, ValueError))
    assert func.call_count == 1


def test_poll_until__found():
    action = mock.Mock(side_effect=[1, 2, 3])
    result = poll_until(action, lambda value: value == 3, time_limit=10)
    assert result.found
    assert not result.timed_out
    assert result.value == 3
    assert result.attempts == 3
    assert result.elapsed == 2


def test_poll_until__time_limit():
    action = mock.Mock(return_value=0)
    result = poll_until(action, lambda value: value > 0, time_limit=3)
    assert result.timed_out
    assert result.value == 0
    assert result.attempts == 4
    assert result.elapsed == 3


def test_poll_until__max_attempts():
    action = mock.Mock(return_value=0)
    result = poll_until(action, lambda value: False, time_limit=100, max_attempts=2)
    assert not result.found
    assert action.call_count == 2
