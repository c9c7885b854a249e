"""
Metadata Models for MTGInstaller

This module contains the game metadata (which files make up a pristine
installation and how the executable is patched) and the optional metadata
document bundled inside a component archive.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from mtginstaller.utils.helpers import load_yaml_file, load_yaml_text

# target => {symbolic module => real module filename}
RelinkMap = Dict[str, Dict[str, str]]


class MetadataError(Exception):
    """Exception raised for malformed metadata documents."""
    pass


def _string_list(data: Dict[str, Any], key: str) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise MetadataError(f"'{key}' must be a list")
    return [str(v) for v in value]


@dataclass(frozen=True)
class ExeSubstitution:
    """A literal string substitution applied to the game executable."""
    source: str
    target: str

    def as_bytes(self) -> Tuple[bytes, bytes]:
        return self.source.encode("utf-8"), self.target.encode("utf-8")


@dataclass
class GameMetadata:
    """Describes the pristine game files and the viable patch targets."""
    latest_version: Optional[str] = None
    executables: List[str] = field(default_factory=list)
    managed_files: List[str] = field(default_factory=list)
    viable_patch_targets: List[str] = field(default_factory=list)
    exe_substitutions: List[ExeSubstitution] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameMetadata':
        if not isinstance(data, dict):
            raise MetadataError("Game metadata must be a mapping")

        substitutions = []
        for entry in data.get("exe_orig_subsitutions") or []:
            if not isinstance(entry, dict) or "from" not in entry or "to" not in entry:
                raise MetadataError(f"Malformed executable substitution: {entry!r}")
            substitutions.append(ExeSubstitution(str(entry["from"]), str(entry["to"])))

        return cls(
            latest_version=(str(data["latest_version"])
                            if data.get("latest_version") is not None else None),
            executables=_string_list(data, "executables") or [],
            managed_files=_string_list(data, "managed_files") or [],
            viable_patch_targets=_string_list(data, "viable_patch_targets") or [],
            exe_substitutions=substitutions,
        )

    @classmethod
    def from_yaml(cls, text: str) -> 'GameMetadata':
        try:
            return cls.from_dict(load_yaml_text(text) or {})
        except yaml.YAMLError as e:
            raise MetadataError(f"Malformed game metadata: {e}") from e


@dataclass
class ComponentMetadata:
    """
    Optional ``metadata.yml`` bundled with a component.

    ``install_in_managed`` has priority over ``install_in_subdir`` for the same
    entry. ``ordered_targets`` overrides the game's patch target order.
    """
    name: Optional[str] = None
    install_in_subdir: Optional[List[str]] = None
    install_in_managed: Optional[List[str]] = None
    ordered_targets: Optional[List[str]] = None
    relink_map: Optional[RelinkMap] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ComponentMetadata':
        if not isinstance(data, dict):
            raise MetadataError("Component metadata must be a mapping")

        relink_map = data.get("relink_map")
        if relink_map is not None:
            if not isinstance(relink_map, dict) or not all(isinstance(v, dict) for v in relink_map.values()):
                raise MetadataError("'relink_map' must map targets to {module: file} mappings")
            relink_map = {str(target): {str(k): str(v) for k, v in mapping.items()}
                          for target, mapping in relink_map.items()}

        return cls(
            name=data.get("name"),
            install_in_subdir=_string_list(data, "install_in_subdir"),
            install_in_managed=_string_list(data, "install_in_managed"),
            ordered_targets=_string_list(data, "ordered_targets"),
            relink_map=relink_map,
        )

    @classmethod
    def load(cls, file_path: Path) -> 'ComponentMetadata':
        try:
            return cls.from_dict(load_yaml_file(file_path) or {})
        except yaml.YAMLError as e:
            raise MetadataError(f"Malformed component metadata {file_path}: {e}") from e
