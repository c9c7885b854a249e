"""
Settings Management System for MTGInstaller

This module provides the persisted user settings (JSON) and the per-run
installer options derived from them and from command-line flags. Settings
are an explicit object handed to whoever needs them; there is no global
instance.
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from enum import Flag, auto
from pathlib import Path
from typing import Any, Dict, List, Optional

from mtginstaller.utils.helpers import load_json_file, save_json_file


class InstallerOptions(Flag):
    """Behaviour switches of one installer run."""
    NONE = 0
    SKIP_VERSION_CHECKS = auto()
    FORCE_BACKUP = auto()
    HTTP = auto()
    LEAVE_PATCH_DLLS = auto()
    OFFLINE = auto()


@dataclass
class Settings:
    """Persisted user settings."""
    executable_path: Optional[str] = None
    force_http: bool = False
    force_backup: bool = False
    skip_version_checks: bool = False
    custom_component_files: List[str] = field(default_factory=list)
    leave_patch_dlls: bool = False
    offline: bool = False
    patch_engine_command: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        """Create Settings from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def load(cls, file_path: Path) -> 'Settings':
        """
        Load settings from a JSON file.

        A missing file is created with the default values. An unreadable file
        is logged and the defaults are used.
        """
        logger = logging.getLogger("MTGInstaller")
        file_path = Path(file_path)

        if not file_path.exists():
            logger.info("No settings file found, using defaults")
            settings = cls()
            settings.save(file_path)
            return settings

        logger.debug(f"Loading settings from {file_path}")
        data = load_json_file(file_path)
        if not isinstance(data, dict):
            logger.warning(f"Settings file {file_path} is unreadable, using defaults")
            return cls()

        return cls.from_dict(data)

    def save(self, file_path: Path) -> bool:
        """
        Save settings to a JSON file.

        Returns:
            bool: True if settings were saved successfully
        """
        saved = save_json_file(file_path, self.to_dict())
        if saved:
            logging.getLogger("MTGInstaller").debug(f"Settings saved to {file_path}")
        return saved

    def options(self) -> InstallerOptions:
        """Installer options enabled by these settings."""
        options = InstallerOptions.NONE
        if self.skip_version_checks:
            options |= InstallerOptions.SKIP_VERSION_CHECKS
        if self.force_backup:
            options |= InstallerOptions.FORCE_BACKUP
        if self.force_http:
            options |= InstallerOptions.HTTP
        if self.leave_patch_dlls:
            options |= InstallerOptions.LEAVE_PATCH_DLLS
        if self.offline:
            options |= InstallerOptions.OFFLINE
        return options

    def user_friendly(self) -> str:
        """Render the settings as a sectioned text summary."""
        lines = [
            "[General]",
            f"  Executable path: {self.executable_path or '(autodetect)'}",
            f"  Patch engine command: {self.patch_engine_command or '(not set)'}",
            "",
            "[Network]",
            f"  Force HTTP: {self._yes_no(self.force_http)}",
            f"  Offline: {self._yes_no(self.offline)}",
            "",
            "[Installation]",
            f"  Force backup: {self._yes_no(self.force_backup)}",
            f"  Skip version checks: {self._yes_no(self.skip_version_checks)}",
            f"  Leave patch DLLs: {self._yes_no(self.leave_patch_dlls)}",
            "",
            "[Custom component files]",
        ]

        if self.custom_component_files:
            lines += [f"  - {path}" for path in self.custom_component_files]
        else:
            lines.append("  (none)")

        return "\n".join(lines)

    @staticmethod
    def _yes_no(value: bool) -> str:
        return "yes" if value else "no"
