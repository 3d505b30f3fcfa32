# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

import json
import tempfile
import unittest
from pathlib import Path

from genai_rotator.core.types import CredentialStatus, KeyStatus
from genai_rotator.usage.storage import KeyStatusStorage
from studio_app.main import build_parser, main


class StudioCliTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.status_file = Path(self._temp_dir.name) / "key_status.json"
        KeyStatusStorage(self.status_file).save(
            {
                "abc": CredentialStatus(
                    id="abc", name="Project A", status=KeyStatus.QUOTA_EXHAUSTED, failure_count=1
                ),
                "def": CredentialStatus(id="def", name="Project B", status=KeyStatus.PERMANENTLY_BLOCKED),
            }
        )

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args(["image", "a fox"])
        self.assertEqual(args.prompt, "a fox")
        self.assertEqual(args.aspect_ratio, "1:1")
        self.assertIsNone(args.out)

    def test_reset_one_by_name(self) -> None:
        self.assertEqual(main(["--status-file", str(self.status_file), "reset", "--name", "Project A"]), 0)
        remaining = json.loads(self.status_file.read_text(encoding="utf-8"))
        self.assertEqual(list(remaining), ["def"])

    def test_reset_unknown_name(self) -> None:
        self.assertEqual(main(["--status-file", str(self.status_file), "reset", "--name", "Nope"]), 1)

    def test_text_with_unreadable_schema_exits_cleanly(self) -> None:
        missing = Path(self._temp_dir.name) / "missing.json"
        broken = Path(self._temp_dir.name) / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        for schema_file in (missing, broken):
            with self.subTest(schema_file=schema_file.name):
                argv = [
                    "--status-file", str(self.status_file),
                    "text", "hi", "--schema", str(schema_file),
                ]
                self.assertEqual(main(argv), 1)

    def test_reset_all(self) -> None:
        self.assertEqual(main(["--status-file", str(self.status_file), "reset"]), 0)
        self.assertFalse(self.status_file.exists())


if __name__ == "__main__":
    unittest.main()
