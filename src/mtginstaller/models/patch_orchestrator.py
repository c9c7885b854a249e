"""
Patch Orchestrator for MTGInstaller

This module drives the external patch engine over the managed assemblies a
component patches. Targets are processed in order; a target without matching
patch assemblies is skipped, and the first engine failure aborts the run.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from mtginstaller.models.installable_component import InstallableComponent
from mtginstaller.models.metadata import GameMetadata
from mtginstaller.services.events import EventManager, Events
from mtginstaller.services.patch_engine import PatchEngine, PatchEngineError, PatchSession

TMP_PATCH_SUFFIX = ".patched"
DEBUG_SYMBOL_SUFFIXES = (f"{TMP_PATCH_SUFFIX}.mdb", f"{TMP_PATCH_SUFFIX}.pdb")


class ModuleCache:
    """
    Relink modules loaded during one installation run, keyed by filename.

    A cache belongs to a single orchestrator run and is never shared between
    runs, since the managed directory changes as components are installed.
    """

    def __init__(self):
        self._modules: Dict[str, Any] = {}

    def __contains__(self, filename: str) -> bool:
        return filename in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def get_or_load(self, filename: str, managed_dir: Path, session: PatchSession) -> Any:
        """Return the cached module, loading it from the managed directory on first use."""
        module = self._modules.get(filename)
        if module is None:
            logging.getLogger("MTGInstaller").debug(f"Loading relink module {filename}")
            module = session.load_module(managed_dir / filename)
            self._modules[filename] = module
        return module

    def clear(self) -> None:
        self._modules.clear()


class PatchOrchestrator:
    """Applies a component's patch assemblies to the game's managed assemblies."""

    def __init__(self, engine: PatchEngine, metadata: GameMetadata, managed_dir: Path,
                 event_manager: Optional[EventManager] = None):
        self.logger = logging.getLogger("MTGInstaller")
        self.engine = engine
        self.metadata = metadata
        self.managed_dir = Path(managed_dir)
        self.event_manager = event_manager
        self.module_cache = ModuleCache()

    def target_order(self, component: InstallableComponent) -> List[str]:
        """Component-declared target order if present, else the game's viable targets."""
        if component.ordered_targets:
            return list(component.ordered_targets)
        return list(self.metadata.viable_patch_targets)

    def matching_patches(self, component: InstallableComponent, target: str) -> List[str]:
        """Patch assemblies installed in the managed directory that belong to a target."""
        prefix = f"{target}."
        return [dll for dll in component.patch_assemblies
                if dll.startswith(prefix) and (self.managed_dir / dll).is_file()]

    def _relink(self, session: PatchSession, component: InstallableComponent, target: str) -> None:
        mapping = component.relink_map.get(target)
        if not mapping:
            return

        for symbol, filename in mapping.items():
            module = self.module_cache.get_or_load(filename, self.managed_dir, session)
            self.logger.debug(f"Relinking {symbol} => {filename}")
            session.relink(symbol, module)

    def patch_target(self, component: InstallableComponent, target: str) -> bool:
        """
        Patch one target assembly.

        Returns:
            bool: False if the component has no patches for this target

        Raises:
            PatchEngineError: If the engine fails
        """
        patches = self.matching_patches(component, target)
        if not patches:
            self.logger.info(f"Not patching {target} because this component has no patches for it")
            return False

        target_dll = self.managed_dir / f"{target}.dll"
        target_tmp = self.managed_dir / f"{target}{TMP_PATCH_SUFFIX}"

        self.logger.info(f"Patching target: {target}")

        try:
            with self.engine.open_session(target_dll, target_tmp) as session:
                self._relink(session, component, target)
                session.read()

                for dll in patches:
                    self.logger.debug(f"Using patch assembly: {dll}")
                    session.read_mod(self.managed_dir / dll)

                session.map_dependencies()
                session.auto_patch()
                session.write()
        except PatchEngineError:
            raise
        except Exception as e:
            raise PatchEngineError(f"Failed to patch {target}: {e}") from e

        self.logger.debug(f"Replacing original ({target_tmp.name} => {target_dll.name})")
        if target_dll.exists():
            target_dll.unlink()
        shutil.move(str(target_tmp), str(target_dll))

        if self.event_manager:
            self.event_manager.emit(Events.TARGET_PATCHED, target=target, component=component)

        return True

    def apply(self, component: InstallableComponent, leave_patch_assemblies: bool = False) -> List[str]:
        """
        Patch every target of a component in order.

        Args:
            component: Component whose files are already installed
            leave_patch_assemblies: Keep the patch assemblies after patching

        Returns:
            List[str]: Targets that were patched
        """
        patched = [target for target in self.target_order(component) if self.patch_target(component, target)]

        if not leave_patch_assemblies:
            for dll in component.patch_assemblies:
                installed = component.target_path(self.managed_dir, dll)
                if not installed.is_file():
                    continue
                self.logger.debug(f"Cleaning up patch assembly {dll}")
                installed.unlink()

        self.cleanup_debug_symbols()
        return patched

    def cleanup_debug_symbols(self) -> None:
        self.logger.debug("Cleaning up patched assembly MDB/PDBs")
        if not self.managed_dir.is_dir():
            return
        for entry in self.managed_dir.iterdir():
            if entry.name.endswith(DEBUG_SYMBOL_SUFFIXES) and entry.is_file():
                entry.unlink()

    def close(self) -> None:
        """End the run and drop its module cache."""
        self.module_cache.clear()
