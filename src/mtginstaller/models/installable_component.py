"""
Installable Component Model for MTGInstaller

An InstallableComponent is one downloaded and extracted component version.
Its top-level entries are classified once (assemblies, patch assemblies, other
files, directories, metadata, native plugins) and each entry is routed either
into the managed directory or into a per-component subdirectory beneath it.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from mtginstaller.models.component import Component, ComponentError, ComponentVersion
from mtginstaller.models.metadata import ComponentMetadata, RelinkMap
from mtginstaller.utils.file_ops import FileOperations

PATCH_ASSEMBLY_SUFFIX = ".mm.dll"  # must have priority over ASSEMBLY_SUFFIXES
ASSEMBLY_SUFFIXES = (".dll", ".exe")
METADATA_FILENAME = "metadata.yml"
PLUGINS_DIRNAME = "Plugins"


class VersionCheck(Enum):
    """Outcome of comparing the game version with a component's supported version."""
    OK = "ok"
    OLDER = "older"
    NEWER = "newer"
    UNSPECIFIED = "unspecified"


class TargetDirectory(Enum):
    MANAGED = "managed"
    SUBDIR = "subdir"


def parse_version(version: str) -> Tuple[int, ...]:
    """
    Parse a dotted numeric version, padded to four components.

    Raises:
        ComponentError: If a component is not numeric
    """
    try:
        parts = tuple(int(p) for p in version.strip().split("."))
    except ValueError:
        raise ComponentError(f"Unrecognized version format: {version}") from None
    return parts + (0,) * (4 - len(parts))


class InstallableComponent:
    """An extracted component version ready to be installed."""

    def __init__(self, name: str, version_key: str, version_name: str, extracted_path: Path,
                 supported_gungeon: Optional[str] = None, entries: Optional[Iterable[Path]] = None):
        self.logger = logging.getLogger("MTGInstaller")
        self.file_ops = FileOperations()

        self._name = name
        self.version_key = version_key
        self.version_name = version_name
        self.extracted_path = Path(extracted_path)
        self.supported_gungeon = supported_gungeon

        self.assemblies: List[str] = []
        self.patch_assemblies: List[str] = []
        self.other_files: List[str] = []
        self.dirs: List[str] = []
        self.metadata: Optional[ComponentMetadata] = None
        self.plugins_path: Optional[Path] = None

        if entries is None:
            entries = self.extracted_path.iterdir()

        for entry in sorted(Path(e) for e in entries):
            self._classify(entry)

    @classmethod
    def from_download(cls, component: Component, version: ComponentVersion, extracted_path: Path) -> 'InstallableComponent':
        return cls(component.name, version.key, version.display_name, extracted_path, version.supported_gungeon)

    def _classify(self, entry: Path) -> None:
        filename = entry.name

        if filename.endswith(PATCH_ASSEMBLY_SUFFIX):
            self.patch_assemblies.append(filename)
        elif filename.endswith(ASSEMBLY_SUFFIXES):
            self.assemblies.append(filename)
        elif filename == METADATA_FILENAME and entry.is_file():
            self.metadata = ComponentMetadata.load(entry)
        elif filename == PLUGINS_DIRNAME and entry.is_dir():
            self.plugins_path = entry
        elif entry.is_dir():
            self.dirs.append(filename)
        else:
            self.other_files.append(filename)

    @property
    def name(self) -> str:
        if self.metadata is not None and self.metadata.name:
            return self.metadata.name
        return self._name

    @property
    def has_plugins(self) -> bool:
        return self.plugins_path is not None

    @property
    def install_in_subdir(self) -> List[str]:
        return (self.metadata.install_in_subdir if self.metadata else None) or []

    @property
    def install_in_managed(self) -> List[str]:
        return (self.metadata.install_in_managed if self.metadata else None) or []

    @property
    def ordered_targets(self) -> Optional[List[str]]:
        return self.metadata.ordered_targets if self.metadata else None

    @property
    def relink_map(self) -> RelinkMap:
        return (self.metadata.relink_map if self.metadata else None) or {}

    def check_game_version(self, game_version: Optional[str]) -> VersionCheck:
        """
        Compare the detected game version with the supported one.

        Returns:
            VersionCheck: OLDER if the game is older than supported, NEWER if
            it is newer, UNSPECIFIED if the component declares no version

        Raises:
            ComponentError: If the game version is unknown or not numeric
        """
        if self.supported_gungeon is None:
            self.logger.warning(f"{self.name} {self.version_name} does not have a specified supported Gungeon version.")
            return VersionCheck.UNSPECIFIED

        if game_version == self.supported_gungeon:
            self.logger.debug("Versions match.")
            return VersionCheck.OK

        if game_version is None:
            raise ComponentError("the installed game version is unknown")

        game = parse_version(game_version)
        supported = parse_version(self.supported_gungeon)

        if game == supported:
            self.logger.debug("Versions match (through numeric comparison).")
            return VersionCheck.OK
        if supported > game:
            return VersionCheck.OLDER
        return VersionCheck.NEWER

    def target_dir(self, entry: str, default: TargetDirectory = TargetDirectory.MANAGED) -> TargetDirectory:
        """Routing decision for one entry; the managed list wins over the subdir list."""
        target = default
        if entry in self.install_in_subdir:
            target = TargetDirectory.SUBDIR
        if entry in self.install_in_managed:
            target = TargetDirectory.MANAGED
        return target

    def target_path(self, managed_dir: Path, entry: str, default: TargetDirectory = TargetDirectory.MANAGED) -> Path:
        if self.target_dir(entry, default) == TargetDirectory.SUBDIR:
            return managed_dir / self.name / entry
        return managed_dir / entry

    def _install(self, kind: str, entries: List[str], managed_dir: Path, default: TargetDirectory) -> List[Path]:
        installed = []
        for entry in entries:
            self.logger.info(f"Installing {kind}: {entry}")

            target = self.target_path(managed_dir, entry, default)
            target.parent.mkdir(parents=True, exist_ok=True)
            self.file_ops.copy(self.extracted_path / entry, target)
            installed.append(target)
        return installed

    def install_files(self, managed_dir: Path) -> List[Path]:
        """
        Copy every classified entry to its target directory.

        Returns:
            List[Path]: Installed paths, in installation order
        """
        installed = []
        installed += self._install("assembly", self.assemblies, managed_dir, TargetDirectory.MANAGED)
        installed += self._install("patch assembly", self.patch_assemblies, managed_dir, TargetDirectory.MANAGED)
        installed += self._install("file", self.other_files, managed_dir, TargetDirectory.SUBDIR)
        installed += self._install("directory", self.dirs, managed_dir, TargetDirectory.SUBDIR)
        return installed

    def __str__(self) -> str:
        return f"{self.name} {self.version_name}"
