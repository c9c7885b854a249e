"""
Component Data Models for MTGInstaller

This module contains the data classes describing installable components as
listed in a components document, and the parsing of such documents.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import yaml

from mtginstaller.utils.helpers import load_yaml_text


class ComponentError(Exception):
    """Exception raised for malformed component lists or unknown components."""
    pass


@dataclass
class ComponentVersion:
    """Represents one released version of a component."""
    key: str
    display_name: str
    url: Optional[str] = None
    path: Optional[str] = None
    release_date: Optional[str] = None
    beta: bool = False
    supported_gungeon: Optional[str] = None
    requires_exe_patch: bool = False

    @property
    def source(self) -> Optional[str]:
        """Local archive path if present, otherwise the download URL."""
        return self.path or self.url

    @property
    def is_local(self) -> bool:
        return self.path is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ComponentVersion':
        """Create a ComponentVersion from its document representation."""
        if not isinstance(data, dict) or "key" not in data:
            raise ComponentError(f"Malformed component version entry: {data!r}")

        key = str(data["key"])
        return cls(
            key=key,
            display_name=str(data.get("name", key)),
            url=data.get("url"),
            path=data.get("path"),
            release_date=data.get("release_date"),
            beta=bool(data.get("beta", False)),
            supported_gungeon=(str(data["supported_gungeon"])
                               if data.get("supported_gungeon") is not None else None),
            requires_exe_patch=bool(data.get("requires_exe_patch", False)),
        )

    def __str__(self) -> str:
        kind = "β" if self.beta else "R"
        return f"[{self.key} {kind}] {self.display_name} ({self.release_date})"


@dataclass
class Component:
    """
    Represents an installable component and its versions.

    The version list is either embedded in the document or fetched lazily from
    ``versions_url`` the first time it is needed.
    """
    name: str
    author: str = "(Unknown)"
    description: str = "(Missing)"
    versions_url: Optional[str] = None
    _versions: Optional[List[ComponentVersion]] = None
    versions_loader: Optional[Callable[[str], str]] = field(default=None, repr=False, compare=False)

    @property
    def versions(self) -> List[ComponentVersion]:
        if self._versions is not None:
            return self._versions

        if self.versions_url is None:
            raise ComponentError(f"Component {self.name}: both versions_url and versions aren't set")
        if self.versions_loader is None:
            raise ComponentError(f"Component {self.name}: no way to fetch {self.versions_url}")

        logging.getLogger("MTGInstaller").debug(f"Fetching versions of {self.name} from {self.versions_url}")
        data = _parse_document(self.versions_loader(self.versions_url))
        if not isinstance(data, list):
            raise ComponentError(f"Version list of {self.name} is not a list")

        self._versions = [ComponentVersion.from_dict(v) for v in data]
        return self._versions

    def find_version(self, key: Optional[str]) -> Optional[ComponentVersion]:
        """
        Find a version by key.

        Args:
            key: Version key, or None for the newest (first listed) version

        Returns:
            ComponentVersion if found, None otherwise
        """
        versions = self.versions
        if key is None:
            return versions[0] if versions else None

        key = key.strip()
        for version in versions:
            if version.key == key:
                return version
        return None

    def merge(self, other: 'Component') -> None:
        """Merge another definition of this component, replacing versions with equal keys."""
        for version in other.versions:
            existing = [v for v in self.versions if v.key != version.key]
            existing.append(version)
            self._versions = existing

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Component':
        """Create a Component from its document representation."""
        if not isinstance(data, dict) or not data.get("name"):
            raise ComponentError(f"Malformed component entry: {data!r}")

        versions = data.get("versions")
        return cls(
            name=str(data["name"]),
            author=str(data.get("author") or "(Unknown)"),
            description=str(data.get("description") or "(Missing)"),
            versions_url=data.get("versions_url"),
            _versions=[ComponentVersion.from_dict(v) for v in versions] if versions is not None else None,
        )

    def __str__(self) -> str:
        versions = self.versions
        last_update = versions[0].release_date if versions else None
        return f"{self.name} w/ {len(versions)} version(s) (last update: {last_update or 'N/A'})"


@dataclass(frozen=True)
class ComponentRequest:
    """A (component name, optional version key) pair requested by the user."""
    name: str
    version: Optional[str] = None

    @classmethod
    def parse_list(cls, text: str) -> List['ComponentRequest']:
        """
        Parse a semicolon separated ``name[@version]`` list.

        Raises:
            ComponentError: If an entry is malformed
        """
        requests = []
        for entry in text.split(";"):
            parts = [p for p in entry.split("@") if p]
            if len(parts) < 1 or len(parts) > 2 or not parts[0].strip():
                raise ComponentError(
                    "Improperly formatted component list - components should be separated by semicolons "
                    "and may optionally have a version specified by putting '@VER' right after the name.\n"
                    "Example: ETGMod;Example@1.0;SomethingElse;AnotherComponent@0.banana"
                )
            requests.append(cls(parts[0].strip(), parts[1].strip() if len(parts) == 2 else None))
        return requests


def _parse_document(text: str) -> Any:
    try:
        return load_yaml_text(text)
    except yaml.YAMLError as e:
        raise ComponentError(f"Malformed component list: {e}") from e


def parse_components(text: str) -> List[Component]:
    """
    Parse a components document.

    Args:
        text: YAML document holding a list of components

    Returns:
        List[Component]: Parsed components (empty for an empty document)

    Raises:
        ComponentError: If the document is malformed
    """
    data = _parse_document(text)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ComponentError("Malformed component list: expected a list of components")
    return [Component.from_dict(entry) for entry in data]


def merge_components(target: Dict[str, Component], components: List[Component]) -> None:
    """Merge parsed components into a name-indexed dictionary."""
    for component in components:
        existing = target.get(component.name)
        if existing is None:
            target[component.name] = component
        else:
            existing.merge(component)
