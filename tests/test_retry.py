import unittest
from unittest import mock

import httplib2
from googleapiclient.errors import HttpError

from drivezip.utils.retry import retry_with_backoff


def http_error(status):
    return HttpError(httplib2.Response({"status": status}), b"error")


class Flaky:
    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryWithBackoff(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("drivezip.utils.retry.time.sleep")
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

    def test_retries_transient_errors_with_growing_delay(self):
        func = Flaky(ConnectionError("reset"), http_error(503))

        result = retry_with_backoff(max_retries=3, initial_delay=1, backoff_factor=2)(func)()

        self.assertEqual(result, "ok")
        self.assertEqual(func.calls, 3)
        self.assertEqual([c.args[0] for c in self.sleep.call_args_list], [1, 2])

    def test_rate_limit_is_retried(self):
        func = Flaky(http_error(429))

        self.assertEqual(retry_with_backoff(max_retries=1, initial_delay=0)(func)(), "ok")
        self.assertEqual(func.calls, 2)

    def test_client_errors_are_not_retried(self):
        func = Flaky(http_error(404))

        with self.assertRaises(HttpError):
            retry_with_backoff(max_retries=5, initial_delay=0)(func)()
        self.assertEqual(func.calls, 1)

    def test_gives_up_after_max_retries(self):
        func = Flaky(TimeoutError("1"), TimeoutError("2"), TimeoutError("3"))

        with self.assertRaises(TimeoutError) as ctx:
            retry_with_backoff(max_retries=2, initial_delay=0)(func)()
        self.assertEqual(str(ctx.exception), "3")
        self.assertEqual(func.calls, 3)

    def test_other_exceptions_propagate_immediately(self):
        func = Flaky(KeyError("boom"))

        with self.assertRaises(KeyError):
            retry_with_backoff(max_retries=3, initial_delay=0)(func)()
        self.assertEqual(func.calls, 1)


if __name__ == "__main__":
    unittest.main()
