"""
Assembly Patch Engine Interface for MTGInstaller

Managed assemblies are rewritten by an external patching engine. This module
defines the contract the installer drives (open a base assembly, relink module
references, feed patch assemblies, write the result) and a default engine that
hands the job to an external command-line patcher.
"""

import json
import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence


class PatchEngineError(Exception):
    """Raised when the patching engine fails to rewrite an assembly."""
    pass


class PatchSession(ABC):
    """One base assembly being patched into an output path."""

    def __init__(self, input_path: Path, output_path: Path):
        self.input_path = Path(input_path)
        self.output_path = Path(output_path)

    @abstractmethod
    def read(self) -> None:
        """Open the base assembly."""

    @abstractmethod
    def load_module(self, path: Path) -> Any:
        """Load a module that relinked references can point to."""

    @abstractmethod
    def relink(self, symbol: str, module: Any) -> None:
        """Redirect references to ``symbol`` to a loaded module."""

    @abstractmethod
    def read_mod(self, path: Path) -> None:
        """Add a patch assembly to apply to the base assembly."""

    @abstractmethod
    def map_dependencies(self) -> None: ...

    @abstractmethod
    def auto_patch(self) -> None: ...

    @abstractmethod
    def write(self) -> None:
        """Write the patched assembly to the output path."""

    def dispose(self) -> None:
        pass

    def __enter__(self) -> 'PatchSession':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.dispose()


class PatchEngine(ABC):
    """Factory of patch sessions."""

    @abstractmethod
    def open_session(self, input_path: Path, output_path: Path) -> PatchSession: ...


class ExternalPatchSession(PatchSession):
    """
    Collects a patch job and runs it through an external command.

    The job is written as JSON next to the output assembly and its path is
    passed as the last argument of the command.
    """

    def __init__(self, command: Sequence[str], input_path: Path, output_path: Path):
        super().__init__(input_path, output_path)
        self.logger = logging.getLogger("MTGInstaller")
        self.command = list(command)
        self.mods: List[str] = []
        self.relinks: Dict[str, str] = {}
        self.steps: List[str] = []

    @property
    def job_file(self) -> Path:
        return self.output_path.with_name(f"{self.output_path.name}.job.json")

    def read(self) -> None:
        if not self.input_path.is_file():
            raise PatchEngineError(f"Patch target not found: {self.input_path}")

    def load_module(self, path: Path) -> str:
        path = Path(path)
        if not path.is_file():
            raise PatchEngineError(f"Relink module not found: {path}")
        return str(path)

    def relink(self, symbol: str, module: str) -> None:
        self.relinks[symbol] = module

    def read_mod(self, path: Path) -> None:
        self.mods.append(str(path))

    def map_dependencies(self) -> None:
        self.steps.append("map_dependencies")

    def auto_patch(self) -> None:
        self.steps.append("auto_patch")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": str(self.input_path),
            "output": str(self.output_path),
            "mods": self.mods,
            "relink_map": self.relinks,
            "steps": self.steps,
        }

    def write(self) -> None:
        with open(self.job_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

        cmd = self.command + [str(self.job_file)]
        self.logger.debug(f"Running patch engine: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, cwd=str(self.input_path.parent), capture_output=True, text=True)
        except OSError as e:
            raise PatchEngineError(f"Failed to run patch engine '{self.command[0]}': {e}") from e

        for line in (result.stdout or "").strip().splitlines()[-10:]:
            self.logger.debug(f"  [patcher] {line}")

        if result.returncode != 0:
            raise PatchEngineError(f"Patching {self.input_path.name} failed with exit code {result.returncode}: "
                                   f"{(result.stderr or result.stdout or '').strip()}")

        if not self.output_path.is_file():
            raise PatchEngineError(f"Patch engine did not produce {self.output_path}")

    def dispose(self) -> None:
        if self.job_file.exists():
            self.job_file.unlink()


class ExternalPatchEngine(PatchEngine):
    """
    Patch engine backed by an external command-line patcher.

    A missing command is only an error once a target actually needs patching,
    so components without patch assemblies install without a patcher.
    """

    def __init__(self, command: Optional[str | Sequence[str]]):
        if isinstance(command, str):
            command = shlex.split(command)
        self.command = list(command or [])

    def open_session(self, input_path: Path, output_path: Path) -> ExternalPatchSession:
        if not self.command:
            raise PatchEngineError("No patch engine command configured (see the 'patch_engine_command' setting)")
        return ExternalPatchSession(self.command, input_path, output_path)
