from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

_POST = {
    "caption": "#ad This is a sponsored post about fitness.",
    "mediaType": "video",
    "mediaUrl": "https://cdn.example.com/video.mp4",
    "transcript": "In this video, I mention my partnership with the brand.",
    "hashtags": ["ad", "sponsored", "fitness"],
    "altText": "",
}

_REQUIREMENTS = """\
Must include #ad hashtag

Must mention partnership in audio
Must include nonexistent term
"""


class TestCLISmoke(unittest.TestCase):
    def _run(self, args: list[str], td: str) -> subprocess.CompletedProcess[str]:
        repo_root = Path(__file__).resolve().parents[1]

        env = dict(os.environ)
        env.pop("OPENAI_API_KEY", None)
        env.pop("APIFY_TOKEN", None)

        existing_pp = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = (
            f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
        )

        return subprocess.run(
            [sys.executable, "-m", "ig_compliance", *args],
            cwd=td,
            env=env,
            capture_output=True,
            text=True,
            timeout=60,
        )

    def test_rule_based_analysis_from_files(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            post_path = Path(td) / "post.json"
            post_path.write_text(json.dumps(_POST), encoding="utf-8")
            reqs_path = Path(td) / "requirements.txt"
            reqs_path.write_text(_REQUIREMENTS, encoding="utf-8")
            log_path = Path(td) / "run.jsonl"

            proc = self._run(
                [
                    "analyze",
                    "--post-file",
                    str(post_path),
                    "--requirements-file",
                    str(reqs_path),
                    "--no-ai",
                    "--log",
                    str(log_path),
                ],
                td,
            )

            self.assertEqual(proc.returncode, 0, msg=proc.stderr)

            report = json.loads(proc.stdout)
            self.assertEqual(report["overallScore"], 67)
            self.assertFalse(report["aiPowered"])
            self.assertEqual(report["model"], "rule-based")
            self.assertEqual([r["passed"] for r in report["results"]], [True, True, False])

            events = [json.loads(line)["event"] for line in log_path.read_text(encoding="utf-8").splitlines()]
            self.assertIn("config_loaded", events)
            self.assertIn("analysis_completed", events)

    def test_missing_openai_key_is_a_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            post_path = Path(td) / "post.json"
            post_path.write_text(json.dumps(_POST), encoding="utf-8")

            proc = self._run(
                ["analyze", "--post-file", str(post_path), "--requirements", "Must include #ad"],
                td,
            )

            self.assertEqual(proc.returncode, 2)
            self.assertIn("OPENAI_API_KEY", proc.stderr)

    def test_blank_requirements_are_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            post_path = Path(td) / "post.json"
            post_path.write_text(json.dumps(_POST), encoding="utf-8")

            proc = self._run(
                ["analyze", "--post-file", str(post_path), "--requirements", "   ", "--no-ai"],
                td,
            )

            self.assertEqual(proc.returncode, 2)
            self.assertIn("At least one requirement", proc.stderr)


if __name__ == "__main__":
    unittest.main()
