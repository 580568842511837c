import sys
import time
import shutil
import filecmp
import zipfile
import logging
import requests
from pathlib import Path
from dataclasses import dataclass, field
from typing import Iterator, List, Optional
import appstart.settings as default_settings
from appstart.local.errors import UpgradeError

log = logging.getLogger(__name__)


@dataclass
class UpgradePlan:
    """Files the template would add or replace in the installation."""
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    version: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.modified


class TemplateUpgrader:
    """Downloads the base template and overlays it onto the installation root."""

    def __init__(self, root_dir: Path, template_url: Optional[str] = None):
        self.root_dir = root_dir
        self.template_url = template_url if template_url is not None else default_settings.TEMPLATE_URL
        self.temp_dir = root_dir / ".temp"
        self.old_dir = root_dir / ".old"

    def get_current_version(self) -> Optional[str]:
        """Reads the template version recorded by the last upgrade."""
        version_file = self.root_dir / default_settings.TEMPLATE_VERSION_FILE
        if not version_file.exists():
            return None
        try:
            return version_file.read_text().strip() or None
        except (OSError, UnicodeDecodeError) as e:
            log.warning(f"Could not read '{version_file}': {e}")
            return None

    def _download_file(self, url: str, dest_path: Path) -> None:
        """Downloads the template archive, or copies it when `url` is a local path."""
        local_source = Path(url).expanduser()
        if "://" not in url and local_source.is_file():
            shutil.copyfile(local_source, dest_path)
            return

        log.info(f"Downloading template from {url}...")
        try:
            with requests.get(url, stream=True, timeout=default_settings.TEMPLATE_DOWNLOAD_TIMEOUT) as r:
                r.raise_for_status()
                total_size = int(r.headers.get("content-length", 0))
                with open(dest_path, "wb") as f:
                    downloaded = 0
                    for chunk in r.iter_content(chunk_size=8192):
                        f.write(chunk)
                        downloaded += len(chunk)
                        done = int(50 * downloaded / total_size) if total_size else 0
                        sys.stdout.write(f"\r[{'=' * done}{' ' * (50-done)}] {downloaded/1024/1024:.2f} MB")
                        sys.stdout.flush()
            sys.stdout.write("\n")
        except requests.RequestException as e:
            dest_path.unlink(missing_ok=True)
            raise UpgradeError(f"Template download failed: {e}") from e

    def _unzip_archive(self, archive_path: Path) -> Path:
        """
        Extracts the archive and returns the directory holding the template files.

        Archives that wrap everything in one top-level folder are unwrapped.
        """
        extract_dir = self.temp_dir / "template"
        try:
            with zipfile.ZipFile(archive_path, "r") as zip_ref:
                zip_ref.extractall(extract_dir)
        except (zipfile.BadZipFile, OSError) as e:
            raise UpgradeError(f"Template extraction failed: {e}") from e

        entries = list(extract_dir.iterdir())
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return extract_dir

    def _iter_template_files(self, template_root: Path) -> Iterator[Path]:
        for path in sorted(template_root.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(template_root)
            if any(part in default_settings.UPGRADE_EXCLUDED_NAMES for part in relative.parts):
                continue
            yield relative

    def build_plan(self, template_root: Path) -> UpgradePlan:
        """Compares the extracted template against the installation."""
        plan = UpgradePlan()
        for relative in self._iter_template_files(template_root):
            target = self.root_dir / relative
            if not target.exists():
                plan.added.append(relative.as_posix())
            elif not filecmp.cmp(template_root / relative, target, shallow=False):
                plan.modified.append(relative.as_posix())

        version_file = template_root / "VERSION"
        if version_file.is_file():
            plan.version = version_file.read_text().strip() or None
        return plan

    def apply_plan(self, template_root: Path, plan: UpgradePlan) -> None:
        """Archives replaced files under .old/<timestamp>/ and copies the template in."""
        archive_dir = self.old_dir / time.strftime("%Y%m%d-%H%M%S")
        for relative in plan.modified:
            backup = archive_dir / relative
            backup.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.root_dir / relative, backup)
        if plan.modified:
            log.info(f"Archived {len(plan.modified)} replaced file(s) to '{archive_dir}'.")

        for relative in plan.added + plan.modified:
            target = self.root_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(template_root / relative, target)

        if plan.version:
            (self.root_dir / default_settings.TEMPLATE_VERSION_FILE).write_text(plan.version + "\n")

    def upgrade(self, dry_run: bool = False) -> UpgradePlan:
        """
        Fetches the template and applies it, or only reports changes when `dry_run`.

        :param dry_run: If True, nothing in the installation is modified.
        :return: The computed plan.
        :raises UpgradeError: If no template source is configured or fetching fails.
        """
        if not self.template_url:
            raise UpgradeError("No template source configured. Set APPSTART_TEMPLATE_URL.")

        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)
        self.temp_dir.mkdir(parents=True)
        try:
            archive_path = self.temp_dir / "template.zip"
            self._download_file(self.template_url, archive_path)
            template_root = self._unzip_archive(archive_path)
            plan = self.build_plan(template_root)
            if not dry_run:
                self.apply_plan(template_root, plan)
            return plan
        finally:
            shutil.rmtree(self.temp_dir, ignore_errors=True)


def run_upgrade(root_dir: Path, args: List[str]) -> int:
    """
    Entry point of the 'upgrade' command.

    :param root_dir: The installation root.
    :param args: Arguments following 'upgrade'; only --dry-run is recognised.
    :return: The process exit status.
    """
    dry_run = "--dry-run" in args
    unknown = [a for a in args if a != "--dry-run"]
    if unknown:
        print(f"Unknown upgrade option(s): {' '.join(unknown)}", file=sys.stderr)
        return 1

    upgrader = TemplateUpgrader(root_dir)
    current = upgrader.get_current_version() or "unknown"
    try:
        plan = upgrader.upgrade(dry_run=dry_run)
    except UpgradeError as e:
        log.error(f"Upgrade failed: {e}")
        return 1

    target = plan.version or "unknown"
    if plan.is_empty:
        print(f"Base template is up to date (current: {current}, latest: {target}).")
        return 0

    header = "Changes that would be applied" if dry_run else "Applied changes"
    print(f"{header} (template {current} -> {target}):")
    for path in plan.added:
        print(f"  + {path}")
    for path in plan.modified:
        print(f"  ~ {path}")
    if dry_run:
        print("Dry run: no files were changed.")
    return 0
