# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
import tempfile
import unittest
from pathlib import Path

from genai_rotator.core.types import CredentialStatus, KeyStatus
from genai_rotator.usage.storage import KeyStatusStorage, MemoryKeyStatusStorage


class KeyStatusStorageTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self._temp_dir.name) / "key_status.json"
        self.storage = KeyStatusStorage(self.path)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_missing_file_is_empty(self) -> None:
        self.assertEqual(self.storage.load(), {})

    def test_corrupt_file_is_empty(self) -> None:
        self.path.write_text("{not json", encoding="utf-8")
        self.assertEqual(self.storage.load(), {})

    def test_non_object_root_is_empty(self) -> None:
        self.path.write_text("[1, 2, 3]", encoding="utf-8")
        self.assertEqual(self.storage.load(), {})

    def test_malformed_entries_are_skipped(self) -> None:
        self.path.write_text(
            json.dumps(
                {
                    "good": {"status": "quota_exhausted", "failureCount": 1},
                    "bad_status": {"status": "melted"},
                    "not_a_dict": "active",
                }
            ),
            encoding="utf-8",
        )
        statuses = self.storage.load()
        self.assertEqual(list(statuses), ["good"])
        self.assertEqual(statuses["good"].status, KeyStatus.QUOTA_EXHAUSTED)

    def test_save_writes_camel_case_and_reloads(self) -> None:
        status = CredentialStatus(
            id="abc",
            name="Main",
            status=KeyStatus.DAILY_LIMITED,
            failure_count=2,
            last_error="quota per day",
            exhausted_at=100.0,
            reset_at=200.0,
        )
        self.assertTrue(self.storage.save({"abc": status}))
        self.assertFalse(self.path.with_suffix(".tmp").exists())

        raw = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(raw["abc"]["projectName"], "Main")
        self.assertEqual(raw["abc"]["status"], "daily_limited")
        self.assertEqual(raw["abc"]["resetAt"], 200.0)
        self.assertNotIn("lastUsedAt", raw["abc"])

        self.assertEqual(KeyStatusStorage(self.path).load()["abc"], status)

    def test_undecodable_bytes_are_empty(self) -> None:
        self.path.write_bytes(b'{"a": {"status": "active\xff\xfe"}}')
        self.assertEqual(self.storage.load(), {})

    def test_non_numeric_timestamps_are_skipped(self) -> None:
        self.path.write_text(
            json.dumps(
                {
                    "bad": {"status": "daily_limited", "resetAt": "2026-01-01"},
                    "good": {"status": "daily_limited", "resetAt": 1767225600},
                }
            ),
            encoding="utf-8",
        )
        statuses = self.storage.load()
        self.assertEqual(list(statuses), ["good"])
        self.assertEqual(statuses["good"].reset_at, 1767225600.0)

    def test_legacy_daily_limit_status(self) -> None:
        self.path.write_text(
            json.dumps({"abc": {"status": "daily_limit", "resetAt": 5}}), encoding="utf-8"
        )
        self.assertEqual(self.storage.load()["abc"].status, KeyStatus.DAILY_LIMITED)

    def test_clear_one_and_clear_all(self) -> None:
        self.storage.save(
            {"a": CredentialStatus(id="a"), "b": CredentialStatus(id="b")}
        )
        self.assertTrue(self.storage.clear_one("a"))
        self.assertFalse(self.storage.clear_one("a"))
        self.assertEqual(list(self.storage.load()), ["b"])

        self.storage.clear_all()
        self.assertFalse(self.path.exists())
        self.storage.clear_all()


class MemoryKeyStatusStorageTest(unittest.TestCase):
    def test_load_returns_copies(self) -> None:
        storage = MemoryKeyStatusStorage({"a": CredentialStatus(id="a")})
        loaded = storage.load()
        loaded["a"].failure_count = 9
        self.assertEqual(storage.load()["a"].failure_count, 0)
        self.assertEqual(storage.raw("a")["failureCount"], 0)


if __name__ == "__main__":
    unittest.main()
