"""Tests for request ID propagation into log records."""

import asyncio
import logging

from barber_booking.logging_context import (
    RequestIdFilter,
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)


def _record() -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)


class TestRequestId:
    def test_filter_stamps_current_id(self):
        set_request_id("WA-wamid.1")
        record = _record()
        assert RequestIdFilter().filter(record)
        assert record.request_id == "WA-wamid.1"

    def test_new_request_id_becomes_current(self):
        request_id = new_request_id("CLI")
        assert request_id.startswith("CLI-")
        assert get_request_id() == request_id

    def test_ids_isolated_per_task(self):
        async def handle(request_id):
            set_request_id(request_id)
            await asyncio.sleep(0)
            return get_request_id()

        async def main():
            return await asyncio.gather(handle("WA-1"), handle("WA-2"))

        assert asyncio.run(main()) == ["WA-1", "WA-2"]

    def test_logger_gets_one_filter(self):
        logger = get_request_logger("barber_booking.tests.once")
        get_request_logger("barber_booking.tests.once")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1
