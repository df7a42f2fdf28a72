import tempfile
import unittest
from pathlib import Path

from mcexporter.core.config import StartupError, build_context, load_config, resolve_config_path
from mcexporter.core.env_config import EnvConfig

from support import RecordingLog


class EnvConfigTests(unittest.TestCase):
    def test_reads_basic_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "config.env"
            conf.write_text(
                "\n".join(
                    [
                        "# exporter settings",
                        "SERVICE=minecraft",
                        "PROMETHEUS_PORT=9300",
                        "SCRAPE_INTERVAL=7.5",
                        "BACKUP_DIR=./backups",
                        'RCON_PASSWORD="s3cret"',
                        "export WORLD_DIRS=world, world_nether ,",
                    ]
                ),
                encoding="utf-8",
            )
            cfg = EnvConfig(conf, root, environ={})
            self.assertEqual(cfg.get_str("SERVICE", "x"), "minecraft")
            self.assertEqual(cfg.get_int("PROMETHEUS_PORT", 0), 9300)
            self.assertEqual(cfg.get_float("SCRAPE_INTERVAL", 0.0), 7.5)
            self.assertEqual(cfg.get_path("BACKUP_DIR", root / "none"), root / "backups")
            self.assertEqual(cfg.get_str("RCON_PASSWORD", ""), "s3cret")
            self.assertEqual(cfg.get_list("WORLD_DIRS", ()), ("world", "world_nether"))

    def test_missing_file_and_bad_values_fall_back(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            cfg = EnvConfig(root / "absent.env", root, environ={"PROMETHEUS_PORT": "abc", "RCON_PORT": "-4"})
            self.assertEqual(cfg.get_int("PROMETHEUS_PORT", 9225), 9225)
            self.assertEqual(cfg.get_int("RCON_PORT", 25575, minimum=1), 1)
            self.assertEqual(cfg.get_str("SERVICE", "minecraft.service"), "minecraft.service")

    def test_environment_overrides_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "config.env"
            conf.write_text("PROMETHEUS_PORT=9300\n", encoding="utf-8")
            cfg = EnvConfig(conf, root, environ={"PROMETHEUS_PORT": "9400", "UNRELATED": "1"})
            self.assertEqual(cfg.get_int("PROMETHEUS_PORT", 0), 9400)
            self.assertNotIn("UNRELATED", cfg.values)


class BuildContextTests(unittest.TestCase):
    def _build(self, root, lines, environ=None):
        conf = root / "config.env"
        conf.write_text("\n".join(lines), encoding="utf-8")
        log = RecordingLog()
        cfg = EnvConfig(conf, root, environ=environ or {})
        return build_context(cfg, log.log_action, log.log_exception)

    def test_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            ctx = self._build(root, [])
            self.assertEqual(ctx.PROMETHEUS_PORT, 9225)
            self.assertEqual(ctx.SCRAPE_INTERVAL_SECONDS, 15.0)
            self.assertEqual(ctx.RCON_TIMEOUT_SECONDS, 5.0)
            self.assertEqual(ctx.PLAYERS_MAX_DEFAULT, 20)
            self.assertEqual(ctx.BACKUP_DIR, root / "backups")
            self.assertEqual(ctx.WORLD_DIRS, ("world", "world_nether", "world_the_end"))
            self.assertFalse(ctx.rcon_enabled)
            self.assertTrue(ctx.PROCESS_PATTERN.search("java -jar mohist-1.20.1-123.jar nogui"))

    def test_server_properties_supply_rcon_and_player_max(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "server.properties").write_text(
                "enable-rcon=true\nrcon.password=hunter2\nrcon.port=25999\nmax-players=69\n",
                encoding="utf-8",
            )
            ctx = self._build(root, [])
            self.assertEqual(ctx.RCON_PASSWORD, "hunter2")
            self.assertEqual(ctx.RCON_PORT, 25999)
            self.assertEqual(ctx.PLAYERS_MAX_DEFAULT, 69)

    def test_explicit_settings_win_over_server_properties(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "server.properties").write_text(
                "enable-rcon=true\nrcon.password=hunter2\nmax-players=69\n",
                encoding="utf-8",
            )
            ctx = self._build(root, ["RCON_PASSWORD=mine", "PLAYERS_MAX_DEFAULT=10"])
            self.assertEqual(ctx.RCON_PASSWORD, "mine")
            self.assertEqual(ctx.PLAYERS_MAX_DEFAULT, 10)

    def test_invalid_process_pattern_is_a_startup_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(StartupError):
                self._build(Path(tmp), ["PROCESS_PATTERN=mohist[.jar"])

    def test_out_of_range_ports_are_a_startup_error(self):
        cases = [
            ["PROMETHEUS_PORT=70000"],
            ["PROMETHEUS_PORT=-1"],
            ["RCON_PORT=65536"],
            ["RCON_PORT=0"],
            ["GAME_PORT=100000"],
        ]
        for lines in cases:
            with tempfile.TemporaryDirectory() as tmp:
                with self.assertRaises(StartupError, msg=lines[0]):
                    self._build(Path(tmp), lines)

    def test_out_of_range_port_from_server_properties_is_a_startup_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "server.properties").write_text(
                "enable-rcon=true\nrcon.password=hunter2\nrcon.port=99999\n",
                encoding="utf-8",
            )
            with self.assertRaises(StartupError):
                self._build(root, [])

    def test_boundary_ports_are_accepted(self):
        with tempfile.TemporaryDirectory() as tmp:
            ctx = self._build(Path(tmp), ["PROMETHEUS_PORT=0", "RCON_PORT=65535", "GAME_PORT=1"])
            self.assertEqual((ctx.PROMETHEUS_PORT, ctx.RCON_PORT, ctx.GAME_PORT), (0, 65535, 1))

    def test_resolve_config_path_precedence(self):
        self.assertEqual(resolve_config_path("/etc/x.env", environ={}), Path("/etc/x.env"))
        self.assertEqual(
            resolve_config_path(None, environ={"MC_EXPORTER_CONFIG": "/srv/mc.env"}),
            Path("/srv/mc.env"),
        )
        self.assertEqual(
            resolve_config_path(None, environ={}, cwd="/srv/mc"),
            Path("/srv/mc/deploy/config.env"),
        )

    def test_load_config_reads_default_deploy_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "deploy").mkdir()
            (root / "deploy" / "config.env").write_text("PROMETHEUS_PORT=9999\n", encoding="utf-8")
            cfg = load_config(None, environ={}, cwd=root)
            self.assertEqual(cfg.get_int("PROMETHEUS_PORT", 0), 9999)


if __name__ == "__main__":
    unittest.main()
