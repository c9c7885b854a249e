"""
Backup Data Models for MTGInstaller

This module describes the on-disk layout of the pristine-files backup kept
inside a game installation.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

BACKUP_DIR_NAME = ".ETGModBackup"
BACKUP_ROOT_NAME = "Root"
BACKUP_MANAGED_NAME = "Managed"
BACKUP_PLUGINS_NAME = "Plugins"
BACKUP_VERSION_NAME = "VERSION"


@dataclass
class Backup:
    """A versioned snapshot of the root, managed and plugin files of a game."""
    path: Path

    @classmethod
    def inside(cls, game_root: Path) -> 'Backup':
        return cls(path=game_root / BACKUP_DIR_NAME)

    @property
    def root_dir(self) -> Path:
        return self.path / BACKUP_ROOT_NAME

    @property
    def managed_dir(self) -> Path:
        return self.path / BACKUP_MANAGED_NAME

    @property
    def plugins_dir(self) -> Path:
        return self.path / BACKUP_PLUGINS_NAME

    @property
    def version_file(self) -> Path:
        return self.path / BACKUP_VERSION_NAME

    @property
    def exists(self) -> bool:
        return self.path.is_dir()

    @property
    def recorded_version(self) -> Optional[str]:
        """Game version the backup was taken from, None if the marker is missing."""
        if not self.version_file.is_file():
            return None
        return self.version_file.read_text(encoding="utf-8").strip()

    def missing_parts(self) -> List[str]:
        """Names of the expected subdirectories or marker that are absent."""
        parts = [
            (BACKUP_ROOT_NAME, self.root_dir.is_dir()),
            (BACKUP_MANAGED_NAME, self.managed_dir.is_dir()),
            (BACKUP_PLUGINS_NAME, self.plugins_dir.is_dir()),
            (BACKUP_VERSION_NAME, self.version_file.is_file()),
        ]
        return [name for name, present in parts if not present]

    @property
    def is_complete(self) -> bool:
        return self.exists and not self.missing_parts()
