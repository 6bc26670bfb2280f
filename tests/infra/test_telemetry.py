from __future__ import annotations

import logging
import unittest

from keepli.observability.logging import SecretMaskingFilter, get_logger
from keepli.observability.telemetry import (
    counter,
    get_counters,
    get_latency_stats,
    reset_telemetry,
    time_block,
)


class TelemetryTests(unittest.TestCase):
    def setUp(self):
        reset_telemetry()

    def test_time_block_appends_ms_suffix(self):
        metric_name = "sheets.append"

        with time_block(metric_name):
            pass

        stats = get_latency_stats(metric_name)
        self.assertEqual(stats["count"], 1)
        self.assertGreaterEqual(stats["p95"], 0.0)
        self.assertEqual(get_latency_stats("sheets.append.latency_ms")["count"], 1)

    def test_time_block_respects_existing_suffix(self):
        metric_name = "save.total_ms"

        with time_block(metric_name):
            pass

        stats = get_latency_stats(metric_name)
        self.assertEqual(stats["count"], 1)

    def test_time_block_records_on_error(self):
        with self.assertRaises(ValueError), time_block("ai.summarize"):
            raise ValueError("boom")

        self.assertEqual(get_latency_stats("ai.summarize")["count"], 1)

    def test_empty_stats(self):
        self.assertEqual(get_latency_stats("never.recorded")["count"], 0)

    def test_counter_increments(self):
        before = counter("test.counter", 0)
        counter("test.counter")
        after = counter("test.counter", 0)
        self.assertEqual(after, before + 1)

    def test_get_counters_filters_by_prefix(self):
        counter("save.success")
        counter("save.failed.duplicate", 2)
        counter("ai.outcome.success")

        self.assertEqual(get_counters("save."), {"save.success": 1, "save.failed.duplicate": 2})


class SecretMaskingTests(unittest.TestCase):
    def _render(self, msg, *args):
        record = logging.LogRecord("keepli.test", logging.INFO, __file__, 1, msg, args, None)
        SecretMaskingFilter().filter(record)
        return record.getMessage()

    def test_masks_bearer_tokens(self):
        rendered = self._render("headers=%s", {"Authorization": "Bearer ya29.abc-def_123"})

        self.assertIn("Bearer [redacted]", rendered)
        self.assertNotIn("ya29", rendered)

    def test_masks_license_keys(self):
        rendered = self._render("payload licenseKey=lic_abcdef123456 url=x")

        self.assertNotIn("lic_abcdef123456", rendered)
        self.assertIn("url=x", rendered)

    def test_leaves_plain_messages_alone(self):
        self.assertEqual(self._render("saved %s rows", 3), "saved 3 rows")

    def test_get_logger_attaches_one_handler(self):
        get_logger("keepli.a")
        get_logger("keepli.b")

        masked = [
            handler
            for handler in logging.getLogger().handlers
            if any(isinstance(f, SecretMaskingFilter) for f in handler.filters)
        ]
        self.assertEqual(len(masked), 1)


if __name__ == "__main__":
    unittest.main()
