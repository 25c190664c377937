from unittest.mock import Mock

import pytest

from klick.utils.exceptions import CacheError, KlickError, SessionError
from klick.utils.logger import PerformanceTimer, exception_processor, init_logging


class TestExceptions:

    def test_to_dict(self):
        cause = ValueError("bad")
        error = SessionError("expired", details={'session_id': 'abc'}, original_error=cause)

        data = error.to_dict()

        assert isinstance(error, CacheError)
        assert data['error_code'] == "SessionError"
        assert data['details'] == {'session_id': 'abc'}
        assert data['original_error'] == "bad"


class TestProcessors:

    def test_klick_error_expanded(self):
        event = exception_processor(None, "error", {'event': 'x', 'exception': KlickError("boom", "E1")})

        assert event['error_code'] == "E1"
        assert event['message'] == "boom"

    def test_plain_exception_summarized(self):
        event = exception_processor(None, "error", {'event': 'x', 'exception': RuntimeError("oops")})

        assert event['exception_type'] == "RuntimeError"
        assert event['exception_message'] == "oops"


class TestPerformanceTimer:

    def test_records_duration(self):
        logger = Mock()

        with PerformanceTimer(logger, "render") as timer:
            pass

        assert timer.duration_ms is not None
        logger.info.assert_called_once()
        assert logger.info.call_args.kwargs['success'] is True

    def test_logs_failure(self):
        logger = Mock()

        with pytest.raises(ValueError):
            with PerformanceTimer(logger, "render"):
                raise ValueError("bad frame")

        logger.error.assert_called_once()


def test_init_logging_returns_logger():
    logger = init_logging()

    assert logger is not None
