from __future__ import annotations

import json
import logging
import sys
import unittest

from kintai.logging_utils import JsonFormatter


class JsonFormatterTests(unittest.TestCase):
    def test_extra_fields_and_japanese_text(self) -> None:
        record = logging.makeLogRecord(
            {
                "name": "kintai.daily_records",
                "levelname": "INFO",
                "msg": "daily_record_saved",
                "user_id": "u-1",
                "note": "電車遅延",
            }
        )

        output = JsonFormatter().format(record)

        payload = json.loads(output)
        self.assertEqual(payload["message"], "daily_record_saved")
        self.assertEqual(payload["user_id"], "u-1")
        self.assertIn("電車遅延", output)

    def test_exception_is_rendered(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.makeLogRecord(
                {"name": "kintai", "levelname": "ERROR", "msg": "failed", "exc_info": sys.exc_info()}
            )

        payload = json.loads(JsonFormatter().format(record))

        self.assertIn("ValueError: boom", payload["exception"])


if __name__ == "__main__":
    unittest.main()
