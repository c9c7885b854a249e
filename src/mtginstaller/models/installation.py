"""
Game Installation Model for MTGInstaller

This module describes an existing game installation: where its executable,
managed assemblies and native plugins live, and which version it reports.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from mtginstaller.services.autodetect import Platform

VERSION_FILENAME = "version.txt"
PATCHES_INFO_FILENAME = "MTGPatches.txt"
LEGACY_BACKUP_DIRNAME = "ModBackup"
TMP_PATCHED_EXE_NAME = "EtG.patched"


class InstallationError(Exception):
    """Exception raised when a game installation cannot be read."""
    pass


def read_version_lines(data_dir: Path) -> List[str]:
    """
    Read ``StreamingAssets/version.txt`` of an installation.

    Raises:
        InstallationError: If the file is missing
    """
    logger = logging.getLogger("MTGInstaller")
    version_file = data_dir / "StreamingAssets" / VERSION_FILENAME

    if not version_file.exists():
        raise InstallationError(f"Game version file not found: {version_file}")

    lines = [line.strip() for line in version_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    if len(lines) < 1 or len(lines) > 2:
        logger.error("The game version.txt file is corrupted or in an unrecognized format.")
        if len(lines) < 1:
            return ["CORRUPTED VERSION.TXT"]

    return lines


@dataclass
class GameInstallation:
    """Represents an installed copy of the game."""
    root_dir: Path
    data_dir: Path
    exe_name: str
    version: Optional[str] = None
    version_name: Optional[str] = None

    @property
    def exe_file(self) -> Path:
        return self.root_dir / self.exe_name

    @property
    def patched_exe_file(self) -> Path:
        return self.root_dir / TMP_PATCHED_EXE_NAME

    @property
    def managed_dir(self) -> Path:
        return self.data_dir / "Managed"

    @property
    def plugins_dir(self) -> Path:
        return self.data_dir / "Plugins"

    @property
    def patches_info_file(self) -> Path:
        return self.managed_dir / PATCHES_INFO_FILENAME

    @property
    def has_legacy_mod(self) -> bool:
        return (self.managed_dir / LEGACY_BACKUP_DIRNAME).is_dir()

    def detect_version(self) -> Optional[str]:
        """Re-read the version reported by the game files."""
        lines = read_version_lines(self.data_dir)
        self.version = lines[0] if len(lines) == 1 else lines[1]
        self.version_name = lines[0]
        return self.version

    def record_patch(self, description: str) -> None:
        """Append an installed component to the patch record."""
        self.managed_dir.mkdir(parents=True, exist_ok=True)
        with open(self.patches_info_file, "a", encoding="utf-8") as f:
            f.write(f"{description}\n")

    def read_patches(self) -> List[str]:
        if self.has_legacy_mod:
            return ["ETGMod Legacy"]
        if not self.patches_info_file.exists():
            return []
        return [line for line in self.patches_info_file.read_text(encoding="utf-8").splitlines() if line]

    @classmethod
    def from_executable(cls, exe_path: Path, platform: Platform, detect_version: bool = True) -> 'GameInstallation':
        """
        Build an installation description from the path of its executable.

        Args:
            exe_path: Path to the game executable
            platform: Platform the installation targets
            detect_version: Whether to read the version file right away

        Raises:
            InstallationError: If the executable or its version file is missing
        """
        exe_path = Path(exe_path)
        if not exe_path.is_file():
            raise InstallationError(f"Game executable not found: {exe_path}")

        root_dir = exe_path.parent
        if platform == Platform.MAC:
            # EtG_OSX.app/Contents/MacOS/EtG_OSX
            data_dir = root_dir.parent / "Resources" / "Data"
        else:
            data_dir = root_dir / "EtG_Data"

        installation = cls(root_dir=root_dir, data_dir=data_dir, exe_name=exe_path.name)
        if detect_version:
            installation.detect_version()
        return installation
