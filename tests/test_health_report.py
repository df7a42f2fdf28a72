import io
import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from mcexporter import main as exporter_main
from mcexporter.services import fact_collector
from mcexporter.services import health_report
from mcexporter.state import CHECK_NAMES, FactSnapshot

from support import make_context

ALL_PASSED = tuple((name, True) for name in CHECK_NAMES)


def healthy_snapshot(**overrides):
    values = dict(
        healthy=True,
        players_online=4,
        players_max=20,
        ticks_per_second=19.5,
        uptime_seconds=7380,
        disk_usage_percent=37,
        disk_available_bytes=50 * 1024 ** 3,
        memory_used_bytes=2 * 1024 ** 3,
        world_size_bytes=3 * 1024 ** 2,
        checks=ALL_PASSED,
    )
    values.update(overrides)
    return FactSnapshot(**values)


class RenderTests(unittest.TestCase):
    def test_human_report(self):
        text = health_report.render_human(healthy_snapshot())
        self.assertIn("Status: HEALTHY", text)
        self.assertIn("4/20", text)
        self.assertIn("19.5", text)
        self.assertIn("2h 3m", text)
        self.assertIn("37%", text)
        for name in CHECK_NAMES:
            self.assertRegex(text, rf"{name}\s+ok")

    def test_human_report_marks_failed_checks(self):
        checks = tuple((name, name != "rcon") for name in CHECK_NAMES)
        text = health_report.render_human(healthy_snapshot(checks=checks))
        self.assertIn("Status: UNHEALTHY", text)
        self.assertRegex(text, r"rcon\s+FAIL")

    def test_json_report(self):
        now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        payload = json.loads(health_report.render_json(healthy_snapshot(), now=now))
        self.assertEqual(payload["healthy"], 1)
        self.assertEqual(payload["timestamp"], "2026-01-02T03:04:05+00:00")
        self.assertEqual(payload["checks"], {name: 1 for name in CHECK_NAMES})
        self.assertEqual(payload["metrics"]["players_online"], 4)
        self.assertEqual(payload["metrics"]["tps"], 19.5)

    def test_prometheus_and_quiet_modes(self):
        prom = health_report.render_report(healthy_snapshot(), "prometheus")
        self.assertIn("minecraft_players_online 4", prom)
        self.assertFalse(prom.endswith("\n"))
        self.assertEqual(health_report.render_report(healthy_snapshot(), "quiet"), "")

    def test_unknown_mode_is_rejected(self):
        with self.assertRaises(ValueError):
            health_report.render_report(healthy_snapshot(), "xml")

    def test_parser_offers_a_flag_per_output_mode(self):
        parser = exporter_main.build_parser()
        self.assertEqual(parser.parse_args(["check"]).mode, health_report.DEFAULT_MODE)
        for mode in health_report.OUTPUT_MODES:
            if mode != health_report.DEFAULT_MODE:
                self.assertEqual(parser.parse_args(["check", f"--{mode}"]).mode, mode)

    def test_exit_code(self):
        self.assertEqual(health_report.exit_code_for(healthy_snapshot()), 0)
        self.assertEqual(health_report.exit_code_for(FactSnapshot()), 1)


class CheckCommandTests(unittest.TestCase):
    def test_check_writes_report_and_returns_exit_code(self):
        ctx, _ = make_context()
        out = io.StringIO()
        with patch.object(fact_collector, "collect", return_value=healthy_snapshot()):
            self.assertEqual(exporter_main.check(ctx, "json", out=out), 0)
        self.assertEqual(json.loads(out.getvalue())["healthy"], 1)

        out = io.StringIO()
        with patch.object(fact_collector, "collect", return_value=FactSnapshot()):
            self.assertEqual(exporter_main.check(ctx, "quiet", out=out), 1)
        self.assertEqual(out.getvalue(), "")

    def test_parser_modes(self):
        parser = exporter_main.build_parser()
        self.assertEqual(parser.parse_args(["check"]).mode, "human")
        self.assertEqual(parser.parse_args(["check", "--json"]).mode, "json")
        self.assertEqual(parser.parse_args(["--config", "x.env", "check", "--prometheus"]).config, "x.env")
        self.assertIsNone(parser.parse_args([]).command)
        with patch("sys.stderr", io.StringIO()), self.assertRaises(SystemExit):
            parser.parse_args(["check", "--json", "--quiet"])

    def test_main_check_runs_end_to_end(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "config.env"
            conf.write_text(f"SERVER_DIR={root}\nLOG_FILE={root / 'exporter.log'}\n", encoding="utf-8")
            stdout = io.StringIO()
            with patch.object(fact_collector, "collect", return_value=healthy_snapshot()), \
                 patch("sys.stdout", stdout), patch("sys.stderr", io.StringIO()):
                code = exporter_main.main(["--config", str(conf), "check", "--prometheus"])
        self.assertEqual(code, 0)
        self.assertIn("minecraft_healthy 1", stdout.getvalue())

    def test_main_rejects_invalid_settings(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "config.env"
            conf.write_text(f"SERVER_DIR={root}\nPROCESS_PATTERN=mohist[\n", encoding="utf-8")
            stderr = io.StringIO()
            with patch("sys.stderr", stderr):
                code = exporter_main.main(["--config", str(conf), "check"])
        self.assertEqual(code, 1)
        self.assertIn("Invalid PROCESS_PATTERN", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
