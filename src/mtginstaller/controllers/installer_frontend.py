"""
Installer Frontend for MTGInstaller

This module provides the controller that sequences a whole operation for a
command-line or graphical collaborator: resolve the game, download components,
restore and back up the pristine files, patch the executable and install each
component in turn. Every handled failure surfaces as a single
InstallationFailedError carrying a user-facing message.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from mtginstaller.models.backup_manager import BackupError, BackupManager
from mtginstaller.models.component import Component, ComponentError, ComponentRequest, ComponentVersion
from mtginstaller.models.installable_component import InstallableComponent, VersionCheck
from mtginstaller.models.installation import GameInstallation, InstallationError
from mtginstaller.models.installer import Installer
from mtginstaller.models.metadata import MetadataError
from mtginstaller.models.platform_plugin import (
    ArchitectureDetectionError,
    InvalidPluginHierarchyError,
    UnknownPlatformError,
)
from mtginstaller.services.autodetect import Autodetector
from mtginstaller.services.downloader import DownloadedBuild, Downloader, DownloadError, DownloadNotFoundError
from mtginstaller.services.events import EventManager, Events
from mtginstaller.services.patch_engine import ExternalPatchEngine, PatchEngine, PatchEngineError
from mtginstaller.services.paths import PathManager
from mtginstaller.services.settings import InstallerOptions, Settings
from mtginstaller.utils.file_ops import FileOperationError

# Failures of the lower layers that abort an operation
HANDLED_ERRORS = (
    BackupError,
    ComponentError,
    MetadataError,
    DownloadError,
    FileOperationError,
    InstallationError,
    InvalidPluginHierarchyError,
    UnknownPlatformError,
    ArchitectureDetectionError,
    PatchEngineError,
)

ResolvedComponent = Tuple[Component, ComponentVersion]


class InstallationFailedError(Exception):
    """The single user-facing failure of an installer operation."""
    pass


class InstallerFrontend:
    """
    Controller sequencing installer operations.

    This controller:
    - Merges settings and per-run options
    - Resolves component requests against the known components
    - Downloads components into named folders
    - Installs and uninstalls components in a game installation
    - Emits operation events for UI coordination
    """

    def __init__(self, settings: Settings, downloader: Downloader,
                 options: InstallerOptions = InstallerOptions.NONE,
                 autodetector: Optional[Autodetector] = None,
                 engine_factory: Optional[Callable[[], PatchEngine]] = None,
                 event_manager: Optional[EventManager] = None):
        """
        Initialize the installer frontend.

        Args:
            settings: User settings
            downloader: Downloader holding the known components
            options: Options of this run, merged with those enabled in the settings
            autodetector: Platform and game autodetection
            engine_factory: Creates the patch engine of an installation run
            event_manager: Event manager for UI communication
        """
        self.logger = logging.getLogger("MTGInstaller")
        self.settings = settings
        self.options = settings.options() | options
        self.downloader = downloader
        self.autodetector = autodetector or Autodetector()
        self.engine_factory = engine_factory or (lambda: ExternalPatchEngine(settings.patch_engine_command))
        self.event_manager = event_manager or EventManager()

    @classmethod
    def create(cls, settings: Settings, paths: PathManager, options: InstallerOptions = InstallerOptions.NONE,
               **kwargs) -> 'InstallerFrontend':
        """
        Build a frontend with its downloader and load every component list.

        Raises:
            InstallationFailedError: If a component list cannot be loaded
        """
        merged = settings.options() | options
        downloader = Downloader(paths,
                                force_http=InstallerOptions.HTTP in merged,
                                offline=InstallerOptions.OFFLINE in merged)
        frontend = cls(settings, downloader, options, **kwargs)
        frontend.load_components()
        return frontend

    @property
    def available_components(self) -> Dict[str, Component]:
        return self.downloader.components

    def has_option(self, option: InstallerOptions) -> bool:
        return option in self.options

    def load_components(self) -> None:
        """Load the official and custom component lists, then the files listed in the settings."""
        try:
            self.downloader.load_components()
        except (DownloadError, ComponentError) as e:
            raise InstallationFailedError(f"Failed to load the component list: {e}") from e

        for path in self.settings.custom_component_files:
            self.load_components_file(path)

    def load_components_file(self, path: str | Path) -> None:
        """
        Merge a local components file.

        Raises:
            InstallationFailedError: If the file is missing or malformed
        """
        try:
            text = Path(path).expanduser().read_text(encoding="utf-8")
        except FileNotFoundError:
            raise InstallationFailedError(f"Local component file '{path}' doesn't exist - verify your settings?") from None

        try:
            self.downloader.add_components_file(text)
        except ComponentError as e:
            raise InstallationFailedError(f"Local component file '{path}' is malformed: {e}") from e

    def try_get_component(self, name: str) -> Optional[Component]:
        return self.downloader.try_get(name.strip())

    def find_version(self, component: Component, key: Optional[str]) -> ComponentVersion:
        """
        Resolve a version of a component (the newest one when ``key`` is None).

        Raises:
            InstallationFailedError: If the version doesn't exist
        """
        try:
            version = component.find_version(key)
        except (ComponentError, DownloadError) as e:
            raise InstallationFailedError(f"Failed to get the versions of component {component.name}: {e}") from e

        if version is None:
            if key is None:
                raise InstallationFailedError(f"Component {component.name} has no versions.")
            raise InstallationFailedError(f"Version {key} of component {component.name} doesn't exist.")
        return version

    def resolve(self, requests: Iterable[ComponentRequest]) -> List[ResolvedComponent]:
        """
        Resolve component requests to (component, version) pairs.

        Raises:
            InstallationFailedError: On unknown or duplicate components and unknown versions
        """
        resolved = []
        used = set()

        for request in requests:
            component = self.try_get_component(request.name)
            if component is None:
                raise InstallationFailedError(f"Component {request.name} doesn't exist in the list of components.")

            if component.name in used:
                raise InstallationFailedError(f"Duplicate {component.name} component.")
            used.add(component.name)

            resolved.append((component, self.find_version(component, request.version)))

        return resolved

    def _download_error(self, e: DownloadError, component: Component, version: ComponentVersion) -> InstallationFailedError:
        if isinstance(e, DownloadNotFoundError):
            return InstallationFailedError(
                f"Error 404 while downloading version {version.display_name} of component {component.name}.")
        return InstallationFailedError(
            f"Unhandled error occured while downloading version {version.display_name} of component "
            f"{component.name}: {e}.")

    def download(self, request: ComponentRequest, force: bool = False,
                 destination: Optional[Path] = None) -> DownloadedBuild:
        """
        Download a component version into a folder named after it.

        Args:
            request: Component and optional version to download
            force: Replace an existing download folder
            destination: Folder override (defaults to the version's display name)

        Raises:
            InstallationFailedError: If the component, version or download fails
        """
        component = self.try_get_component(request.name)
        if component is None:
            raise InstallationFailedError(f"Component {request.name} doesn't exist.")

        version = self.find_version(component, request.version)

        dest = Path(destination) if destination else Path(version.display_name)
        if dest.exists():
            if not force:
                raise InstallationFailedError(
                    f"Version is already downloaded in the '{dest}' folder (use --force to redownload)")
            shutil.rmtree(dest)

        self.logger.info(f"OPERATION: Download. Target: {dest}")
        try:
            build = self.downloader.download(version, dest)
        except DownloadError as e:
            raise self._download_error(e, component, version) from e
        self.logger.info("OPERATION COMPLETED SUCCESSFULLY")
        return build

    def resolve_exe_path(self, suggestion: Optional[str | Path] = None) -> Path:
        """
        Pick the game executable: explicit path, then settings, then autodetection.

        Raises:
            InstallationFailedError: If no executable could be found
        """
        suggestion = suggestion or self.settings.executable_path
        exe_path = self.autodetector.resolve_exe_path(suggestion)
        if exe_path is None:
            raise InstallationFailedError(f"Can't find executable - please manually provide a path to "
                                          f"{self.autodetector.exe_name}")
        return exe_path

    def open_installation(self, exe_path: Optional[str | Path] = None,
                          detect_version: bool = True) -> GameInstallation:
        exe_path = self.resolve_exe_path(exe_path)
        try:
            return GameInstallation.from_executable(exe_path, self.autodetector.platform, detect_version)
        except InstallationError as e:
            raise InstallationFailedError(str(e)) from e

    def _check_version(self, component: InstallableComponent, game_version: Optional[str]) -> None:
        try:
            result = component.check_game_version(game_version)
        except ComponentError as e:
            raise InstallationFailedError(f"Can't compare game versions: {e}") from e

        if result == VersionCheck.OLDER:
            raise InstallationFailedError(
                f"Version mismatch: your installation of Gungeon appears to be older than the version "
                f"{component.name} {component.version_name} supports ({game_version} vs "
                f"{component.supported_gungeon}). You can update or try using '--force' to skip this check "
                f"at your own responsibility.")
        if result == VersionCheck.NEWER:
            raise InstallationFailedError(
                f"Version mismatch: your installation of Gungeon appears to be newer than the version "
                f"{component.name} {component.version_name} supports ({game_version} vs "
                f"{component.supported_gungeon}). You can try using '--force' to skip this check at your "
                f"own responsibility.")

    def install(self, requests: Iterable[ComponentRequest], exe_path: Optional[str | Path] = None) -> None:
        """
        Resolve and install components.

        Raises:
            InstallationFailedError: If any step fails
        """
        self.install_versions(self.resolve(requests), exe_path)

    def install_versions(self, components: List[ResolvedComponent], exe_path: Optional[str | Path] = None) -> None:
        """
        Install resolved components, one after another.

        The pristine files are restored first (unless a fresh backup is forced)
        and backed up before anything is modified.

        Raises:
            InstallationFailedError: If any step fails
        """
        installation = self.open_installation(exe_path)
        target = installation.exe_file

        self.logger.info(f"OPERATION: Install. Target: {target}")
        self.event_manager.emit(Events.OPERATION_STARTED, operation="install", target=target)

        try:
            metadata = self.downloader.game_metadata
            backup_manager = BackupManager(installation, metadata, self.event_manager)

            if not self.has_option(InstallerOptions.FORCE_BACKUP):
                backup_manager.restore()
            backup_manager.create_backup(force=self.has_option(InstallerOptions.FORCE_BACKUP))

            with Installer(installation, metadata, self.engine_factory(), self.autodetector.platform,
                           self.event_manager) as installer:
                if any(version.requires_exe_patch for _, version in components):
                    installer.patch_exe()

                for component, version in components:
                    self._install_one(installer, installation, component, version)

        except DownloadError as e:
            raise InstallationFailedError(f"Failed to fetch the game metadata: {e}") from e
        except HANDLED_ERRORS as e:
            raise InstallationFailedError(str(e)) from e

        self.logger.info("OPERATION COMPLETED SUCCESSFULLY")
        self.event_manager.emit(Events.OPERATION_COMPLETED, operation="install", target=target)

    def _install_one(self, installer: Installer, installation: GameInstallation,
                     component: Component, version: ComponentVersion) -> None:
        try:
            build = self.downloader.download(version)
        except DownloadError as e:
            raise self._download_error(e, component, version) from e

        with build:
            installable = InstallableComponent.from_download(component, version, build.extracted_path)
            if not self.has_option(InstallerOptions.SKIP_VERSION_CHECKS):
                self._check_version(installable, installation.version)

            installer.install_component(installable, self.has_option(InstallerOptions.LEAVE_PATCH_DLLS))

        self.event_manager.emit(Events.COMPONENT_INSTALLED, component=component, version=version)

    def uninstall(self, exe_path: Optional[str | Path] = None) -> None:
        """
        Restore the pristine game files.

        Raises:
            InstallationFailedError: If there is no backup to restore from
        """
        installation = self.open_installation(exe_path)
        target = installation.exe_file

        self.logger.info(f"OPERATION: Uninstall. Target: {target}")
        self.event_manager.emit(Events.OPERATION_STARTED, operation="uninstall", target=target)

        try:
            BackupManager(installation, event_manager=self.event_manager).restore(force=True)
        except HANDLED_ERRORS as e:
            raise InstallationFailedError(str(e)) from e

        self.logger.info("OPERATION COMPLETED SUCCESSFULLY")
        self.event_manager.emit(Events.OPERATION_COMPLETED, operation="uninstall", target=target)

    def has_legacy_mod(self, exe_path: Optional[str | Path] = None) -> bool:
        return self.open_installation(exe_path, detect_version=False).has_legacy_mod

    def get_patch_info(self, exe_path: Optional[str | Path] = None) -> List[str]:
        """Components recorded as installed, or ``["ETGMod Legacy"]`` for a legacy install."""
        return self.open_installation(exe_path, detect_version=False).read_patches()
