"""
Pytest configuration and fixtures for MTGInstaller tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import Mock

from mtginstaller.models.installation import GameInstallation
from mtginstaller.models.metadata import ExeSubstitution, GameMetadata
from mtginstaller.services.events import EventManager
from mtginstaller.services.patch_engine import PatchEngine, PatchSession


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def mock_event_manager():
    """Create a mock event manager."""
    event_manager = Mock(spec=EventManager)
    event_manager.emit = Mock()
    event_manager.subscribe = Mock()
    event_manager.unsubscribe = Mock()
    return event_manager


@pytest.fixture
def game_metadata():
    """Game metadata matching the fake installation."""
    return GameMetadata(
        latest_version="2.1.9",
        executables=["EtG.x86_64", "UnityPlayer.so"],
        managed_files=["Assembly-CSharp.dll", "UnityEngine.dll", "System.dll"],
        viable_patch_targets=["UnityEngine", "Assembly-CSharp"],
        exe_substitutions=[ExeSubstitution("Assembly-CSharp", "Assembly-CSharX")],
    )


@pytest.fixture
def game_dir(temp_dir):
    """Create a fake Linux game installation."""
    root = temp_dir / "Enter the Gungeon"
    data = root / "EtG_Data"
    managed = data / "Managed"
    plugins = data / "Plugins"
    streaming = data / "StreamingAssets"

    for directory in (managed, plugins / "x86", plugins / "x86_64", streaming):
        directory.mkdir(parents=True)

    (root / "EtG.x86_64").write_bytes(b"\x7fELF...Assembly-CSharp...")
    (root / "UnityPlayer.so").write_bytes(b"player")
    (root / "README.txt").write_text("not backed up")
    (managed / "Assembly-CSharp.dll").write_bytes(b"original csharp")
    (managed / "UnityEngine.dll").write_bytes(b"original engine")
    (managed / "System.dll").write_bytes(b"system")
    (plugins / "x86" / "libCSteamworks.so").write_bytes(b"steam32")
    (plugins / "x86_64" / "libCSteamworks.so").write_bytes(b"steam64")
    (streaming / "version.txt").write_text("2.1.9\n")

    return root


@pytest.fixture
def game_installation(game_dir):
    """GameInstallation for the fake game directory."""
    installation = GameInstallation(
        root_dir=game_dir,
        data_dir=game_dir / "EtG_Data",
        exe_name="EtG.x86_64",
    )
    installation.detect_version()
    return installation


class FakePatchSession(PatchSession):
    """Records every call and writes a marker assembly on write()."""

    def __init__(self, engine, input_path, output_path):
        super().__init__(input_path, output_path)
        self.engine = engine
        self.mods = []
        self.relinks = {}
        self.calls = []
        self.disposed = False

    def read(self):
        self.calls.append("read")

    def load_module(self, path):
        self.engine.loaded_modules.append(Path(path).name)
        return f"module:{Path(path).name}"

    def relink(self, symbol, module):
        self.relinks[symbol] = module

    def read_mod(self, path):
        self.mods.append(Path(path).name)

    def map_dependencies(self):
        self.calls.append("map_dependencies")

    def auto_patch(self):
        self.calls.append("auto_patch")

    def write(self):
        if self.engine.fail_on_write:
            raise RuntimeError("engine exploded")
        self.calls.append("write")
        original = self.input_path.read_bytes()
        self.output_path.write_bytes(original + b"+" + b"+".join(m.encode() for m in self.mods))
        # Debug symbols written next to the temporary output
        self.output_path.with_name(self.output_path.name + ".mdb").write_bytes(b"symbols")

    def dispose(self):
        self.disposed = True


class FakePatchEngine(PatchEngine):
    """Patch engine double keeping its sessions for inspection."""

    def __init__(self, fail_on_write=False):
        self.sessions = []
        self.loaded_modules = []
        self.fail_on_write = fail_on_write

    def open_session(self, input_path, output_path):
        session = FakePatchSession(self, input_path, output_path)
        self.sessions.append(session)
        return session

    def session_for(self, target):
        return next(s for s in self.sessions if s.input_path.name == f"{target}.dll")


@pytest.fixture
def fake_engine():
    """Create a recording patch engine."""
    return FakePatchEngine()


@pytest.fixture
def make_component_dir():
    """Factory creating extracted component directories."""

    def make(root, files=None, dirs=None, metadata=None):
        root.mkdir(parents=True, exist_ok=True)
        for name, content in (files or {}).items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content if isinstance(content, bytes) else content.encode())
        for name in dirs or []:
            (root / name).mkdir(parents=True, exist_ok=True)
        if metadata is not None:
            (root / "metadata.yml").write_text(metadata)
        return root

    return make
