"""Tests for the retry module."""

import unittest
from unittest.mock import MagicMock

from namazvakti.retry import NO_RETRY, RetryPolicy, call_with_retry


class Transient(Exception):
    pass


class TestRetryPolicy(unittest.TestCase):
    def test_default_schedule(self):
        self.assertEqual(RetryPolicy().schedule, (1.0, 2.0, 4.0))

    def test_no_retry_schedule(self):
        self.assertEqual(NO_RETRY.schedule, ())


class TestCallWithRetry(unittest.TestCase):
    def test_returns_first_success(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=[Transient(), Transient(), "ok"])
        result = call_with_retry(func, RetryPolicy(), lambda e: isinstance(e, Transient), sleep=sleep)
        self.assertEqual(result, "ok")
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1.0, 2.0])

    def test_gives_up_after_max_retries(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=Transient())
        with self.assertRaises(Transient):
            call_with_retry(func, RetryPolicy(max_retries=3), lambda e: True, sleep=sleep)
        self.assertEqual(func.call_count, 4)
        self.assertEqual(sleep.call_count, 3)

    def test_permanent_error_not_retried(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=ValueError("bad"))
        with self.assertRaises(ValueError):
            call_with_retry(func, RetryPolicy(), lambda e: isinstance(e, Transient), sleep=sleep)
        func.assert_called_once()
        sleep.assert_not_called()

    def test_no_retry_policy(self):
        func = MagicMock(side_effect=Transient())
        with self.assertRaises(Transient):
            call_with_retry(func, NO_RETRY, lambda e: True, sleep=MagicMock())
        func.assert_called_once()


if __name__ == "__main__":
    unittest.main()
