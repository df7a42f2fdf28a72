import re
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from mcexporter.services import system_metrics


def _fake_proc(root, pid, cmdline, rss_kb=None, start_ticks=None):
    pid_dir = root / str(pid)
    pid_dir.mkdir()
    (pid_dir / "cmdline").write_bytes(cmdline.replace(" ", "\x00").encode("utf-8") + b"\x00")
    if rss_kb is not None:
        (pid_dir / "status").write_text(f"Name:\tjava\nVmRSS:\t  {rss_kb} kB\n", encoding="utf-8")
    if start_ticks is not None:
        fields = ["S"] + ["0"] * 18 + [str(start_ticks)] + ["0"] * 10
        (pid_dir / "stat").write_text(f"{pid} (java main) " + " ".join(fields), encoding="utf-8")


class ProcessProbeTests(unittest.TestCase):
    def test_find_process_pids_matches_full_command_line(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _fake_proc(root, 4000042, "java -Xmx8G -jar mohist-1.20.1-511.jar nogui")
            _fake_proc(root, 4000007, "bash")
            (root / "self").mkdir()
            pids = system_metrics.find_process_pids(re.compile(r"mohist-1\.20\.1.*\.jar"), proc_root=root)
        self.assertEqual(pids, [4000042])

    def test_find_process_pids_with_missing_proc_root(self):
        self.assertEqual(system_metrics.find_process_pids(re.compile("x"), proc_root="/nonexistent-proc"), [])

    def test_read_process_rss_bytes(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _fake_proc(root, 42, "java", rss_kb=2048)
            self.assertEqual(system_metrics.read_process_rss_bytes(42, proc_root=root), 2048 * 1024)
            self.assertEqual(system_metrics.read_process_rss_bytes(99, proc_root=root), 0)

    def test_read_process_age_seconds(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _fake_proc(root, 42, "java", start_ticks=1000)
            (root / "uptime").write_text("1010.50 2000.00\n", encoding="utf-8")
            with patch.object(system_metrics, "_clock_ticks_per_second", return_value=100):
                self.assertEqual(system_metrics.read_process_age_seconds(42, proc_root=root), 1000)
            self.assertEqual(system_metrics.read_process_age_seconds(99, proc_root=root), 0)


class DiskUsageTests(unittest.TestCase):
    def test_disk_usage_rounds_up_like_df(self):
        fake = SimpleNamespace(f_blocks=1000, f_bfree=300, f_bavail=250, f_frsize=4096)
        with patch.object(system_metrics.os, "statvfs", return_value=fake):
            percent, available = system_metrics.get_disk_usage("/srv/minecraft")
        # used=700 blocks, available=250 -> 73.68% -> 74
        self.assertEqual(percent, 74)
        self.assertEqual(available, 250 * 4096)

    def test_disk_usage_of_missing_path(self):
        self.assertEqual(system_metrics.get_disk_usage("/nonexistent/minecraft/dir"), (0, 0))


if __name__ == "__main__":
    unittest.main()
