import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr
from pathlib import Path
from unittest.mock import patch

from lg.core.config import Config, apply_overrides, default_config_path, ensure_config_file, load_config
from lg.core.errors import ConfigError


class TestLoadConfig(unittest.TestCase):
    def test_missing_explicit_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(Path(td) / "nope.yml")
            self.assertEqual(cfg, Config())
            self.assertFalse((Path(td) / "nope.yml").exists())

    def test_yaml_values_applied(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text(
                "\n".join(
                    [
                        f'output_dir: "{td}/logs"',
                        'filename_template: "{cmd}_{exit_code}.log"',
                        "split_streams: true",
                        "tee: false",
                        'compress: "gzip"',
                    ]
                )
                + "\n",
                encoding="utf-8",
            )
            cfg = load_config(p)
            self.assertEqual(cfg.output_dir, Path(td) / "logs")
            self.assertEqual(cfg.filename_template, "{cmd}_{exit_code}.log")
            self.assertTrue(cfg.split)
            self.assertTrue(cfg.needs_rename)
            self.assertFalse(cfg.tee)
            self.assertEqual(cfg.compress, "gz")

    def test_empty_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("# nothing\n", encoding="utf-8")
            self.assertEqual(load_config(p), Config())

    def test_unknown_key_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("teee: true\n", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(p)
            self.assertEqual(ctx.exception.code, "config.invalid")

    def test_wrong_type_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("tee: 'yes please'\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(p)

    def test_invalid_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("tee: [unclosed\n", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(p)
            self.assertEqual(ctx.exception.code, "config.invalid_yaml")

    def test_top_level_must_be_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("- a\n- b\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(p)


class TestDefaultConfigFile(unittest.TestCase):
    def test_default_path_from_xdg(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"XDG_CONFIG_HOME": td, "LG_CONFIG": ""}):
                self.assertEqual(default_config_path(), Path(td) / "lg" / "config.yml")

    def test_lg_config_env_wins(self) -> None:
        with patch.dict(os.environ, {"LG_CONFIG": "/tmp/custom-lg.yml"}):
            self.assertEqual(default_config_path(), Path("/tmp/custom-lg.yml"))

    def test_first_run_writes_template_that_loads_as_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"XDG_CONFIG_HOME": td, "LG_CONFIG": ""}):
                cfg = load_config()
                created = Path(td) / "lg" / "config.yml"
                self.assertTrue(created.exists())
                self.assertIn("filename_template", created.read_text(encoding="utf-8"))
                self.assertEqual(cfg, Config())

    @unittest.skipIf(os.name == "nt" or os.geteuid() == 0, "permission bits not enforced")
    def test_create_failure_is_warning(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            locked = Path(td) / "locked"
            locked.mkdir()
            locked.chmod(0o500)
            try:
                err = io.StringIO()
                with redirect_stderr(err):
                    ok = ensure_config_file(locked / "lg" / "config.yml")
                self.assertFalse(ok)
                self.assertIn("lg: warning:", err.getvalue())
            finally:
                locked.chmod(0o700)


class TestApplyOverrides(unittest.TestCase):
    def test_flags_override_config(self) -> None:
        base = Config(tee=True, timestamp_each_line=True)
        cfg = apply_overrides(
            base,
            output=Path("/x"),
            filename_template="{cmd}.log",
            include_args=True,
            split_streams=True,
            plain_lines=True,
            no_timestamps=True,
            compress="gz",
            no_tee=True,
            log_env=True,
            trace_path=Path("/t.jsonl"),
        )
        self.assertEqual(cfg.output_dir, Path("/x"))
        self.assertEqual(cfg.filename_template, "{cmd}.log")
        self.assertTrue(cfg.include_args_in_name)
        self.assertTrue(cfg.split_streams)
        self.assertFalse(cfg.combine_streams)
        self.assertTrue(cfg.plain_lines)
        self.assertFalse(cfg.timestamp_each_line)
        self.assertEqual(cfg.compress, "gz")
        self.assertFalse(cfg.tee)
        self.assertTrue(cfg.log_env)
        self.assertEqual(cfg.trace_path, Path("/t.jsonl"))
        # The input config is untouched.
        self.assertTrue(base.tee)

    def test_absent_flags_keep_config(self) -> None:
        base = Config(split_streams=True, combine_streams=False, tee=False, compress="gz")
        self.assertEqual(apply_overrides(base), base)

    def test_unknown_compress_falls_back_to_none(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err):
            cfg = apply_overrides(Config(compress="gz"), compress="zstd")
        self.assertEqual(cfg.compress, "none")
        self.assertIn("unknown --compress value", err.getvalue())


if __name__ == "__main__":
    unittest.main()
