"""
Installer for MTGInstaller

This module installs extracted components into one game installation:
files are routed into the managed directory, managed assemblies are patched,
native plugins are copied and the installation's patch record is updated.
"""

import logging
from typing import List, Optional

from mtginstaller.models.installable_component import InstallableComponent
from mtginstaller.models.installation import GameInstallation
from mtginstaller.models.metadata import GameMetadata
from mtginstaller.models.patch_orchestrator import PatchOrchestrator
from mtginstaller.models.platform_plugin import create_plugin_installer
from mtginstaller.services.autodetect import Platform
from mtginstaller.services.events import EventManager
from mtginstaller.services.patch_engine import PatchEngine
from mtginstaller.utils.exe_patcher import patch_executable


class Installer:
    """
    Installs components into a game installation.

    One Installer covers one installation run; its patch orchestrator (and the
    relink module cache it owns) lives until ``close()``.
    """

    def __init__(self, installation: GameInstallation, metadata: GameMetadata, engine: PatchEngine,
                 platform: Platform, event_manager: Optional[EventManager] = None):
        self.logger = logging.getLogger("MTGInstaller")
        self.installation = installation
        self.metadata = metadata
        self.platform = platform
        self.event_manager = event_manager
        self.orchestrator = PatchOrchestrator(engine, metadata, installation.managed_dir, event_manager)

    def patch_exe(self) -> bool:
        """
        Apply the game's executable substitutions.

        Returns:
            bool: False if the game declares no substitutions
        """
        if not self.metadata.exe_substitutions:
            self.logger.debug("No executable substitutions declared - not patching the executable")
            return False

        substitutions = [sub.as_bytes() for sub in self.metadata.exe_substitutions]
        patch_executable(self.installation.exe_file, self.installation.patched_exe_file, substitutions)
        return True

    def install_component(self, component: InstallableComponent, leave_patch_dlls: bool = False) -> List[str]:
        """
        Install one extracted component.

        Args:
            component: Component to install
            leave_patch_dlls: Keep the patch assemblies in the managed directory

        Returns:
            List[str]: Patch targets that were rewritten

        Raises:
            PatchEngineError: If a target assembly cannot be patched
            InvalidPluginHierarchyError: If the component's plugin tree is incomplete
        """
        managed_dir = self.installation.managed_dir
        self.logger.info(f"Installing component {component}")

        component.install_files(managed_dir)
        patched = self.orchestrator.apply(component, leave_patch_assemblies=leave_patch_dlls)

        if component.has_plugins:
            self.logger.info(f"Installing native plugins of {component.name}")
            plugin_installer = create_plugin_installer(self.platform)
            plugin_installer.copy(component.plugins_path, self.installation.plugins_dir)

        self.installation.record_patch(str(component))
        return patched

    def close(self) -> None:
        self.orchestrator.close()

    def __enter__(self) -> 'Installer':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
