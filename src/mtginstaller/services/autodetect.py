"""
Autodetection Service for MTGInstaller

This module detects the host platform and architecture, the name of the game
executable for that platform, and the usual Steam/GOG installation locations.
"""

import logging
import os
import struct
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional


class Platform(Enum):
    """Host platform enumeration."""
    UNKNOWN = "unknown"
    WINDOWS = "windows"
    LINUX = "linux"
    MAC = "mac"


class UnknownArchitectureError(ValueError):
    """Raised for an architecture name that is not recognized."""
    pass


class Architecture(Enum):
    """Host architecture enumeration."""
    X86 = "x86"
    X86_64 = "x86_64"

    @classmethod
    def parse(cls, value: str) -> 'Architecture':
        normalized = value.strip().lower().replace("-", "_")
        for arch in cls:
            if arch.value == normalized or arch.name.lower() == normalized:
                return arch
        if normalized in ("32", "i386", "i686"):
            return cls.X86
        if normalized in ("64", "amd64"):
            return cls.X86_64
        raise UnknownArchitectureError(f"Unknown architecture: {value}")


GAME_FOLDER_NAME = "Enter the Gungeon"


def detect_platform(platform_id: Optional[str] = None) -> Platform:
    """Map a ``sys.platform`` style identifier to a Platform."""
    platform_id = (platform_id or sys.platform).lower()

    if platform_id.startswith("win") or platform_id == "cygwin":
        return Platform.WINDOWS
    if platform_id.startswith("darwin") or "mac" in platform_id or "osx" in platform_id:
        return Platform.MAC
    if platform_id.startswith("linux") or "unix" in platform_id:
        return Platform.LINUX
    return Platform.UNKNOWN


def detect_architecture() -> Architecture:
    """Pointer size of the running interpreter."""
    return Architecture.X86 if struct.calcsize("P") == 4 else Architecture.X86_64


class Autodetector:
    """
    Locates the game installation on the current machine.

    Platform and architecture are detected lazily and may be overridden, e.g.
    from the ``--architecture`` command-line option.
    """

    def __init__(self, platform: Optional[Platform] = None, architecture: Optional[Architecture] = None,
                 home: Optional[Path] = None):
        self.logger = logging.getLogger("MTGInstaller")
        self.platform = platform or detect_platform()
        self.architecture = architecture or detect_architecture()
        self.home = home or Path.home()

    @property
    def exe_name(self) -> Optional[str]:
        if self.platform == Platform.LINUX:
            return "EtG.x86" if self.architecture == Architecture.X86 else "EtG.x86_64"
        if self.platform == Platform.WINDOWS:
            return "EtG.exe"
        if self.platform == Platform.MAC:
            return "EtG_OSX"
        return None

    def _steam_library_candidates(self) -> List[Path]:
        if self.platform == Platform.LINUX:
            return [self.home / ".local" / "share" / "Steam", self.home / ".steam" / "steam"]
        if self.platform == Platform.MAC:
            return [self.home / "Library" / "Application Support" / "Steam"]
        if self.platform == Platform.WINDOWS:
            return [Path(r"C:\Program Files (x86)\Steam"), Path(r"C:\Program Files\Steam"), Path(r"D:\Steam")]
        return []

    @property
    def steam_path(self) -> Optional[Path]:
        """Game directory inside the first Steam library found, if any."""
        for library in self._steam_library_candidates():
            if not library.is_dir():
                continue

            apps = library / "SteamApps"
            if not apps.is_dir():
                apps = library / "steamapps"

            path = apps / "common" / GAME_FOLDER_NAME
            if self.platform == Platform.MAC:
                path = path / "EtG_OSX.app" / "Contents" / "MacOS"

            self.logger.debug(f"Steam game path candidate: {path}")
            return path

        return None

    @property
    def gog_path(self) -> Optional[Path]:
        if self.platform == Platform.LINUX:
            base = self.home / "GOG Games"
        elif self.platform == Platform.WINDOWS:
            base = Path(r"C:\GOG Games")
        else:
            return None

        path = base / GAME_FOLDER_NAME
        return path if path.is_dir() else None

    @property
    def exe_path(self) -> Optional[Path]:
        """Path to the game executable, or None if no installation was found."""
        if self.exe_name is None:
            return None

        for directory in (self.steam_path, self.gog_path):
            if directory is None:
                continue
            path = directory / self.exe_name
            if path.is_file():
                return path

        return None

    def resolve_exe_path(self, suggestion: Optional[str | Path] = None) -> Optional[Path]:
        """Explicit path if given, otherwise the autodetected one."""
        if suggestion:
            return Path(os.path.expanduser(str(suggestion)))
        return self.exe_path
