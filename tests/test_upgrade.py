"""Tests for the base template upgrade command."""

import io
import zipfile
from unittest.mock import MagicMock, patch

import pytest
import requests

from appstart.local.errors import UpgradeError
from appstart.local.external import external
from appstart.local.external import TemplateUpgrader, run_upgrade


def _template_zip(path, files, prefix="template-main/"):
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(prefix + name, content)
    return path


@pytest.fixture
def template_files():
    return {
        "VERSION": "2.1.0\n",
        "apps/backend/main.ts": "export const v = 2;\n",
        "apps/frontend/index.html": "<html></html>\n",
        "apps/shared/config.ts": "same\n",
        ".env": "SECRET=from-template\n",
        "apps/frontend/node_modules/pkg/index.js": "ignored\n",
    }


@pytest.fixture
def installation(tmp_path):
    root = tmp_path / "install"
    (root / "apps" / "backend").mkdir(parents=True)
    (root / "apps" / "shared").mkdir(parents=True)
    (root / "apps" / "backend" / "main.ts").write_text("export const v = 1;\n")
    (root / "apps" / "shared" / "config.ts").write_text("same\n")
    (root / ".env").write_text("SECRET=mine\n")
    return root


# ============================================================================
# TestTemplateUpgrader
# ============================================================================

class TestTemplateUpgrader:

    def test_dry_run_reports_without_changing_anything(self, tmp_path, installation, template_files):
        archive = _template_zip(tmp_path / "t.zip", template_files)
        plan = TemplateUpgrader(installation, template_url=str(archive)).upgrade(dry_run=True)

        assert plan.modified == ["apps/backend/main.ts"]
        assert sorted(plan.added) == ["VERSION", "apps/frontend/index.html"]
        assert plan.version == "2.1.0"
        assert (installation / "apps" / "backend" / "main.ts").read_text() == "export const v = 1;\n"
        assert not (installation / "apps" / "frontend").exists()
        assert not (installation / ".template-version").exists()
        assert not (installation / ".temp").exists()

    def test_apply_archives_and_replaces(self, tmp_path, installation, template_files):
        archive = _template_zip(tmp_path / "t.zip", template_files)
        upgrader = TemplateUpgrader(installation, template_url=str(archive))
        upgrader.upgrade()

        assert (installation / "apps" / "backend" / "main.ts").read_text() == "export const v = 2;\n"
        assert (installation / "apps" / "frontend" / "index.html").exists()
        assert upgrader.get_current_version() == "2.1.0"

        backups = list((installation / ".old").rglob("main.ts"))
        assert len(backups) == 1
        assert backups[0].read_text() == "export const v = 1;\n"

    def test_excluded_paths_are_never_touched(self, tmp_path, installation, template_files):
        archive = _template_zip(tmp_path / "t.zip", template_files)
        TemplateUpgrader(installation, template_url=str(archive)).upgrade()
        assert (installation / ".env").read_text() == "SECRET=mine\n"
        assert not (installation / "apps" / "frontend" / "node_modules").exists()

    def test_archive_without_wrapping_folder(self, tmp_path, installation):
        archive = _template_zip(tmp_path / "t.zip", {"README.md": "hi\n", "apps/new.txt": "x\n"}, prefix="")
        plan = TemplateUpgrader(installation, template_url=str(archive)).upgrade(dry_run=True)
        assert sorted(plan.added) == ["README.md", "apps/new.txt"]

    def test_up_to_date_installation_has_empty_plan(self, tmp_path, installation):
        archive = _template_zip(tmp_path / "t.zip", {"apps/shared/config.ts": "same\n"})
        plan = TemplateUpgrader(installation, template_url=str(archive)).upgrade()
        assert plan.is_empty

    def test_unreadable_version_file_is_unknown(self, installation):
        (installation / ".template-version").mkdir()
        assert TemplateUpgrader(installation, template_url="").get_current_version() is None

    def test_missing_source_raises(self, installation):
        with pytest.raises(UpgradeError, match="APPSTART_TEMPLATE_URL"):
            TemplateUpgrader(installation, template_url="").upgrade()

    def test_corrupt_archive_raises(self, tmp_path, installation):
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"not a zip")
        with pytest.raises(UpgradeError, match="extraction"):
            TemplateUpgrader(installation, template_url=str(bad)).upgrade()

    def test_remote_download(self, tmp_path, installation, template_files):
        payload = _template_zip(io.BytesIO(), template_files).getvalue()
        response = MagicMock()
        response.headers = {"content-length": str(len(payload))}
        response.iter_content.return_value = [payload]
        response.__enter__.return_value = response

        with patch.object(external.requests, "get", return_value=response) as get:
            plan = TemplateUpgrader(installation, template_url="https://example.com/t.zip").upgrade(dry_run=True)

        assert get.call_args[0][0] == "https://example.com/t.zip"
        assert plan.modified == ["apps/backend/main.ts"]

    def test_download_failure_raises(self, installation):
        with patch.object(external.requests, "get", side_effect=requests.ConnectionError("offline")):
            with pytest.raises(UpgradeError, match="download failed"):
                TemplateUpgrader(installation, template_url="https://example.com/t.zip").upgrade()


# ============================================================================
# TestRunUpgrade
# ============================================================================

class TestRunUpgrade:

    def test_dry_run_lists_changes(self, tmp_path, installation, template_files, capsys):
        archive = _template_zip(tmp_path / "t.zip", template_files)
        with patch.object(external.default_settings, "TEMPLATE_URL", str(archive)):
            assert run_upgrade(installation, ["--dry-run"]) == 0
        out = capsys.readouterr().out
        assert "~ apps/backend/main.ts" in out
        assert "+ VERSION" in out
        assert "Dry run" in out

    def test_failure_returns_one(self, installation):
        with patch.object(external.default_settings, "TEMPLATE_URL", ""):
            assert run_upgrade(installation, []) == 1

    def test_unknown_option_returns_one(self, installation, capsys):
        assert run_upgrade(installation, ["--force"]) == 1
        assert "--force" in capsys.readouterr().err
