"""
Backup Manager for MTGInstaller

This module provides the BackupManager class, which snapshots the pristine
files of a game installation and restores them before components are
(re)installed or when everything is uninstalled.

The backup is keyed to the game version it was taken from. When the game
reports a different version (it was updated), the backup is stale: it is
discarded instead of restored, and the next backup captures the new files.
"""

import logging
import shutil
from typing import List, Optional

from mtginstaller.models.backup import Backup
from mtginstaller.models.installation import GameInstallation
from mtginstaller.models.metadata import GameMetadata
from mtginstaller.services.events import EventManager, Events
from mtginstaller.utils.file_ops import FileOperations


class BackupError(Exception):
    """Custom exception for backup-related errors."""
    pass


class BackupManager:
    """Manages the pristine-files backup of one game installation."""

    def __init__(self, installation: GameInstallation, metadata: Optional[GameMetadata] = None,
                 event_manager: Optional[EventManager] = None):
        self.logger = logging.getLogger("MTGInstaller")
        self.installation = installation
        self.metadata = metadata or GameMetadata()
        self.event_manager = event_manager
        self.file_ops = FileOperations()
        self.backup = Backup.inside(installation.root_dir)

    def _current_version(self) -> Optional[str]:
        if self.installation.version is None:
            self.installation.detect_version()
        return self.installation.version

    def _warn_missing(self, part: str) -> None:
        self.logger.warning(f"{part} backup is missing - did an error occur while creating the backup? "
                            f"The game files might be corrupted.")

    def restore(self, force: bool = False) -> bool:
        """
        Restore the game files from the backup.

        Args:
            force: Fail instead of silently doing nothing when no backup exists

        Returns:
            bool: True if files were restored, False if there was nothing to
            restore or the backup was stale and got discarded

        Raises:
            BackupError: If ``force`` is set and no backup exists
        """
        if not self.backup.exists:
            if force:
                raise BackupError(f"No backup exists in {self.backup.path} - nothing to restore")
            self.logger.info("Backup doesn't exist - not restoring")
            return False

        recorded = self.backup.recorded_version
        current = self._current_version()

        if recorded is None:
            self._warn_missing("Version marker")
        elif recorded != current:
            # TODO: confirm the updated game files are always pristine here
            self.logger.info(f"Backup was made for game version {recorded} but the game is now {current} - "
                             f"discarding the stale backup")
            shutil.rmtree(self.backup.path)
            if self.event_manager:
                self.event_manager.emit(Events.BACKUP_DISCARDED, recorded_version=recorded, current_version=current)
            return False

        self.logger.info("Restoring from backup")

        if self.installation.patched_exe_file.exists():
            self.logger.info("Removing old temporary patched executable")
            self.installation.patched_exe_file.unlink()

        if not self.backup.root_dir.is_dir():
            self._warn_missing("Root directory")
        else:
            for entry in self.backup.root_dir.iterdir():
                self.logger.debug(f"Restoring root file: {entry.name}")
                target = self.installation.root_dir / entry.name
                self.file_ops.remove(target)
                self.file_ops.copy(entry, target)

        if not self.backup.managed_dir.is_dir():
            self._warn_missing("Managed directory")
        else:
            self.logger.debug("WIPING Managed directory")
            self.file_ops.wipe_directory(self.installation.managed_dir)

            for entry in self.backup.managed_dir.iterdir():
                self.logger.debug(f"Restoring managed file: {entry.name}")
                self.file_ops.copy(entry, self.installation.managed_dir / entry.name)

        if not self.backup.plugins_dir.is_dir():
            self._warn_missing("Plugins directory")
        else:
            self.logger.debug("WIPING Plugins directory")
            self.file_ops.wipe_directory(self.installation.plugins_dir)
            self.file_ops.copy_directory_contents(self.backup.plugins_dir, self.installation.plugins_dir)

        if self.event_manager:
            self.event_manager.emit(Events.BACKUP_RESTORED, backup=self.backup)

        return True

    def create_backup(self, force: bool = False) -> bool:
        """
        Snapshot the pristine game files.

        Args:
            force: Delete an existing backup and take a new one

        Returns:
            bool: True if a backup was written, False if one already existed
        """
        if self.backup.exists:
            if not force:
                for part in self.backup.missing_parts():
                    self.logger.warning(f"Backup directory exists, but {part} is missing from it - did an error "
                                        f"occur while creating the backup? The game files might be corrupted.")

                self.logger.info("Backup folder exists - not backing up")
                return False

            self.logger.info("Removing existing backup")
            shutil.rmtree(self.backup.path)

        self.logger.info("Performing backup")

        self.backup.root_dir.mkdir(parents=True, exist_ok=True)
        self.backup.managed_dir.mkdir(parents=True, exist_ok=True)
        self.backup.plugins_dir.mkdir(parents=True, exist_ok=True)

        for name in self._existing(self.installation.root_dir, self.metadata.executables):
            self.logger.debug(f"Backing up root file: {name}")
            self.file_ops.copy(self.installation.root_dir / name, self.backup.root_dir / name)

        for name in self._existing(self.installation.managed_dir, self.metadata.managed_files):
            self.logger.debug(f"Backing up managed file: {name}")
            self.file_ops.copy(self.installation.managed_dir / name, self.backup.managed_dir / name)

        if self.installation.plugins_dir.is_dir():
            self.logger.debug("Backing up plugins directory")
            self.file_ops.copy_directory_contents(self.installation.plugins_dir, self.backup.plugins_dir)

        # Written last: a backup without a marker was interrupted
        self.backup.version_file.write_text(self._current_version() or "", encoding="utf-8")

        if self.event_manager:
            self.event_manager.emit(Events.BACKUP_CREATED, backup=self.backup)

        return True

    @staticmethod
    def _existing(directory, names: List[str]) -> List[str]:
        if not directory.is_dir():
            return []
        wanted = set(names)
        return sorted(entry.name for entry in directory.iterdir() if entry.name in wanted)
