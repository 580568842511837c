"""Tests for command-line dispatch and the build configuration."""

import sys
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from appstart import main as main_module
from appstart.local import global_config
from appstart.local.console import process
from appstart.local.global_config import BuildInfo, load_build_info, resolve_root_dir


# ============================================================================
# TestCommandDispatch
# ============================================================================

class TestCommandDispatch:

    def test_no_arguments_runs_supervisor(self):
        with patch.object(process, "run_supervisor", return_value=0) as run:
            assert main_module.main([]) == 0
        run.assert_called_once()

    def test_supervisor_exit_status_is_propagated(self):
        with patch.object(process, "run_supervisor", return_value=1):
            assert main_module.main([]) == 1

    @pytest.mark.parametrize("arg", ["version", "-v", "--version"])
    def test_version(self, arg, capsys):
        assert main_module.main([arg]) == 0
        out = capsys.readouterr().out
        assert out.strip() == load_build_info().describe()

    @pytest.mark.parametrize("arg", ["help", "-h", "--help"])
    def test_help(self, arg, capsys):
        assert main_module.main([arg]) == 0
        out = capsys.readouterr().out
        assert "Usage:" in out
        assert "upgrade" in out
        assert "--dry-run" in out

    def test_unknown_command(self, capsys):
        assert main_module.main(["bogus"]) == 1
        captured = capsys.readouterr()
        assert "Unknown command: bogus" in captured.err
        assert "Usage:" in captured.out

    def test_upgrade_receives_remaining_arguments(self):
        with patch.object(process, "run_upgrade", return_value=0) as upgrade:
            assert main_module.main(["upgrade", "--dry-run"]) == 0
        assert upgrade.call_args[0][1] == ["--dry-run"]

    def test_verbose_flag_is_stripped(self, capsys):
        assert main_module.main(["--verbose", "version"]) == 0
        assert load_build_info().describe() in capsys.readouterr().out
        stdout_handlers = [h for h in logging.getLogger().handlers if h.filters]
        assert stdout_handlers and stdout_handlers[0].level == logging.DEBUG


# ============================================================================
# TestBuildInfo
# ============================================================================

class TestBuildInfo:

    def test_describe(self):
        info = BuildInfo(name="demo", version="2.0.0", env="prod")
        assert info.describe() == "demo version 2.0.0 (env: prod)"

    def test_production_flag(self):
        assert BuildInfo("demo", "1", "prod").is_production
        assert not BuildInfo("demo", "1", "dev").is_production
        assert not BuildInfo("demo", "1", "staging").is_production

    def test_is_immutable(self):
        info = BuildInfo("demo", "1", "dev")
        with pytest.raises(Exception):
            info.env = "prod"

    def test_version_comes_from_package(self):
        import appstart
        assert load_build_info().version == appstart.__version__


# ============================================================================
# TestResolveRootDir
# ============================================================================

class TestResolveRootDir:

    def test_environment_override(self, tmp_path):
        assert resolve_root_dir({"APPSTART_ROOT": str(tmp_path)}) == tmp_path.resolve()

    def test_frozen_executable_directory(self, tmp_path):
        exe = tmp_path / "bin" / "appstart"
        with patch.object(global_config.sys, "frozen", True, create=True), \
             patch.object(global_config.sys, "executable", str(exe)):
            assert resolve_root_dir({}) == (tmp_path / "bin").resolve()

    def test_script_directory_holding_apps(self, tmp_path, monkeypatch):
        install = tmp_path / "install"
        (install / "apps").mkdir(parents=True)
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)
        monkeypatch.setattr(global_config.sys, "argv", [str(install / "run.py")])
        assert resolve_root_dir({}) == install.resolve()

    def test_script_directory_without_apps_is_skipped(self, tmp_path, monkeypatch):
        (tmp_path / "bin").mkdir()
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(global_config.sys, "argv", [str(tmp_path / "bin" / "appstart")])
        assert resolve_root_dir({}) == tmp_path.resolve()

    def test_defaults_to_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(global_config.sys, "argv", [""])
        assert resolve_root_dir({}) == Path.cwd().resolve()
