"""
Native Plugin Installation for MTGInstaller

A component that ships native plugins must include them for every platform
and architecture, even though only the current platform's subset is copied:

    Plugins
    |-Linux
    | |-32
    | | |-libX.so
    | |-64
    |   |-libX.so
    |-Windows
    | |-32
    | | |-X.dll
    | |-64
    |   |-X.dll
    |-MacOS
      |-X.bundle
"""

import logging
import struct
from pathlib import Path
from typing import Dict, List, Protocol, Tuple

from mtginstaller.services.autodetect import Platform
from mtginstaller.utils.file_ops import FileOperations

PLATFORM_IDENTIFIERS: Dict[Platform, str] = {
    Platform.LINUX: "Linux",
    Platform.WINDOWS: "Windows",
    Platform.MAC: "MacOS",
}

# Every source plugin tree must contain all of these
REQUIRED_HIERARCHY: List[Tuple[Platform, Tuple[str, ...]]] = [
    (Platform.LINUX, ("32", "64")),
    (Platform.WINDOWS, ("32", "64")),
    (Platform.MAC, ()),
]

ARCH_TARGET_DIRS = {"32": "x86", "64": "x86_64"}

REFERENCE_PLUGIN = "CSteamworks.dll"

PE_MACHINE_I386 = 0x014C
PE_MACHINE_AMD64 = 0x8664
PE_MACHINE_IA64 = 0x0200


class InvalidPluginHierarchyError(Exception):
    """Raised when a component's plugin tree lacks a required directory."""

    def __init__(self, missing_directory: str):
        super().__init__(f"Component is missing the following directory in its plugins folder: {missing_directory}")
        self.missing_directory = missing_directory


class UnknownPlatformError(Exception):
    """Raised when no plugin layout exists for a platform."""

    def __init__(self, platform: Platform):
        super().__init__(f"Unknown platform value: {platform}")
        self.platform = platform


class ArchitectureDetectionError(Exception):
    """Raised when the architecture of an installation cannot be determined."""
    pass


def validate_hierarchy(source_root: Path) -> None:
    """
    Check that a plugin tree contains the directories of every platform.

    Raises:
        InvalidPluginHierarchyError: Naming the first missing directory
    """
    logger = logging.getLogger("MTGInstaller")

    for platform, subdirs in REQUIRED_HIERARCHY:
        identifier = PLATFORM_IDENTIFIERS[platform]
        platform_dir = source_root / identifier
        logger.debug(f"Checking for plugin dir: {platform_dir}")
        if not platform_dir.is_dir():
            raise InvalidPluginHierarchyError(identifier)

        for subdir in subdirs:
            if not (platform_dir / subdir).is_dir():
                raise InvalidPluginHierarchyError(f"{identifier}/{subdir}")


def detect_pe_architecture(dll_path: Path) -> int:
    """
    Read the machine type of a Windows PE image.

    Returns:
        int: 32 or 64

    Raises:
        ArchitectureDetectionError: If the file is missing, is not a PE image,
            or has an unknown machine type
    """
    if not dll_path.is_file():
        raise ArchitectureDetectionError(f"Missing DLL (used to guess the architecture): {dll_path}")

    with open(dll_path, "rb") as f:
        if f.read(2) != b"MZ":
            raise ArchitectureDetectionError(
                f"DLL used to guess the architecture is corrupted: {dll_path} (DOS magic number is not MZ)")
        f.read(58)
        offset_bytes = f.read(4)
        if len(offset_bytes) != 4:
            raise ArchitectureDetectionError(f"DLL used to guess the architecture is truncated: {dll_path}")
        (pe_offset,) = struct.unpack("<I", offset_bytes)

        f.seek(pe_offset)
        if f.read(2) != b"PE":
            raise ArchitectureDetectionError(
                f"DLL used to guess the architecture is corrupted: {dll_path} (PE magic number is not PE)")
        f.read(2)
        machine_bytes = f.read(2)
        if len(machine_bytes) != 2:
            raise ArchitectureDetectionError(f"DLL used to guess the architecture is truncated: {dll_path}")
        (machine,) = struct.unpack("<H", machine_bytes)

    if machine in (PE_MACHINE_AMD64, PE_MACHINE_IA64):
        return 64
    if machine == PE_MACHINE_I386:
        return 32
    raise ArchitectureDetectionError(f"Unknown PE machine flag (can't determine architecture): {machine:#06x}")


def _copy_plugins(source_dir: Path, target_dir: Path, extension: str) -> List[str]:
    logger = logging.getLogger("MTGInstaller")
    file_ops = FileOperations()
    copied = []

    target_dir.mkdir(parents=True, exist_ok=True)
    for entry in sorted(source_dir.iterdir()):
        if not entry.name.endswith(extension):
            continue

        target = target_dir / entry.name
        logger.debug(f"Copying plugin from {entry} to {target}")
        file_ops.remove(target)
        file_ops.copy(entry, target)
        copied.append(entry.name)

    return copied


class PluginInstaller(Protocol):
    """Capabilities shared by every platform's plugin layout."""

    platform: Platform

    def validate_hierarchy(self, source_root: Path) -> None: ...

    def copy(self, source_root: Path, target_dir: Path) -> List[str]: ...


class LinuxPluginInstaller:
    """Both architectures live side by side in ``x86`` and ``x86_64``."""

    platform = Platform.LINUX
    extension = ".so"

    def validate_hierarchy(self, source_root: Path) -> None:
        validate_hierarchy(source_root)

    def copy(self, source_root: Path, target_dir: Path) -> List[str]:
        logger = logging.getLogger("MTGInstaller")
        self.validate_hierarchy(source_root)

        copied = []
        for arch, arch_dir in ARCH_TARGET_DIRS.items():
            logger.info(f"Copying {arch} bit plugins")
            copied += _copy_plugins(source_root / PLATFORM_IDENTIFIERS[self.platform] / arch,
                                    target_dir / arch_dir, self.extension)
        return copied


class WindowsPluginInstaller:
    """A single architecture, detected from the game's own reference plugin."""

    platform = Platform.WINDOWS
    extension = ".dll"

    def validate_hierarchy(self, source_root: Path) -> None:
        validate_hierarchy(source_root)

    def copy(self, source_root: Path, target_dir: Path) -> List[str]:
        logger = logging.getLogger("MTGInstaller")
        self.validate_hierarchy(source_root)

        logger.info("Determining architecture")
        arch = detect_pe_architecture(target_dir / REFERENCE_PLUGIN)
        logger.info(f"Architecture is: {arch} bit")

        logger.info("Copying plugins")
        return _copy_plugins(source_root / PLATFORM_IDENTIFIERS[self.platform] / str(arch),
                             target_dir, self.extension)


class MacPluginInstaller:
    """Universal bundles, no architecture split."""

    platform = Platform.MAC
    extension = ".bundle"

    def validate_hierarchy(self, source_root: Path) -> None:
        validate_hierarchy(source_root)

    def copy(self, source_root: Path, target_dir: Path) -> List[str]:
        logger = logging.getLogger("MTGInstaller")
        self.validate_hierarchy(source_root)

        logger.info("Copying plugins")
        return _copy_plugins(source_root / PLATFORM_IDENTIFIERS[self.platform], target_dir, self.extension)


_INSTALLERS: Dict[Platform, PluginInstaller] = {
    Platform.LINUX: LinuxPluginInstaller(),
    Platform.WINDOWS: WindowsPluginInstaller(),
    Platform.MAC: MacPluginInstaller(),
}


def create_plugin_installer(platform: Platform) -> PluginInstaller:
    """
    Select the plugin layout of a platform.

    Raises:
        UnknownPlatformError: If the platform has no known layout
    """
    try:
        return _INSTALLERS[platform]
    except KeyError:
        raise UnknownPlatformError(platform) from None
