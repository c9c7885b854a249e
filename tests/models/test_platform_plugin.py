"""
Tests for native plugin installation.
"""

import shutil
import struct

import pytest

from mtginstaller.models.platform_plugin import (
    ArchitectureDetectionError,
    InvalidPluginHierarchyError,
    LinuxPluginInstaller,
    MacPluginInstaller,
    UnknownPlatformError,
    WindowsPluginInstaller,
    create_plugin_installer,
    detect_pe_architecture,
    validate_hierarchy,
)
from mtginstaller.services.autodetect import Platform


def pe_image(machine):
    """Minimal PE header with the given machine type."""
    return b"MZ" + b"\0" * 58 + struct.pack("<I", 64) + b"PE\0\0" + struct.pack("<H", machine)


@pytest.fixture
def plugins_source(temp_dir):
    """A complete plugin tree for every platform."""
    root = temp_dir / "Plugins"
    files = [
        "Linux/32/libExample.so",
        "Linux/64/libExample.so",
        "Linux/64/notes.txt",
        "Windows/32/Example.dll",
        "Windows/64/Example.dll",
        "MacOS/Example.bundle/Contents/Info.plist",
    ]
    for name in files:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name)
    return root


class TestHierarchy:
    """Tests for plugin tree validation."""

    def test_complete_tree(self, plugins_source):
        """Test that a complete tree validates."""
        validate_hierarchy(plugins_source)

    @pytest.mark.parametrize("removed, missing", [
        ("Windows/64", "Windows/64"),
        ("MacOS", "MacOS"),
        ("Linux", "Linux"),
    ])
    def test_missing_directory(self, plugins_source, removed, missing):
        """Test that the first missing directory is named."""
        shutil.rmtree(plugins_source / removed)

        with pytest.raises(InvalidPluginHierarchyError) as exc_info:
            validate_hierarchy(plugins_source)

        assert exc_info.value.missing_directory == missing
        assert missing in str(exc_info.value)


class TestPeArchitecture:
    """Tests for reading the PE machine type."""

    @pytest.mark.parametrize("machine, expected", [(0x014C, 32), (0x8664, 64), (0x0200, 64)])
    def test_machine_types(self, temp_dir, machine, expected):
        """Test the supported machine types."""
        dll = temp_dir / "CSteamworks.dll"
        dll.write_bytes(pe_image(machine))
        assert detect_pe_architecture(dll) == expected

    def test_unknown_machine(self, temp_dir):
        """Test that unknown machine types are rejected."""
        dll = temp_dir / "CSteamworks.dll"
        dll.write_bytes(pe_image(0x01C4))
        with pytest.raises(ArchitectureDetectionError, match="Unknown PE machine flag"):
            detect_pe_architecture(dll)

    def test_bad_magic(self, temp_dir):
        """Test that non-PE files are rejected."""
        dll = temp_dir / "CSteamworks.dll"
        dll.write_bytes(b"ELF" + b"\0" * 100)
        with pytest.raises(ArchitectureDetectionError, match="not MZ"):
            detect_pe_architecture(dll)

    def test_missing_file(self, temp_dir):
        """Test that the reference plugin must exist."""
        with pytest.raises(ArchitectureDetectionError, match="Missing DLL"):
            detect_pe_architecture(temp_dir / "CSteamworks.dll")


class TestPluginInstallers:
    """Tests for the per-platform copy strategies."""

    def test_linux_copies_both_architectures(self, plugins_source, temp_dir):
        """Test that Linux gets both architectures and only .so files."""
        target = temp_dir / "game" / "Plugins"

        copied = LinuxPluginInstaller().copy(plugins_source, target)

        assert copied == ["libExample.so", "libExample.so"]
        assert (target / "x86" / "libExample.so").read_text() == "Linux/32/libExample.so"
        assert (target / "x86_64" / "libExample.so").read_text() == "Linux/64/libExample.so"
        assert not (target / "x86_64" / "notes.txt").exists()

    def test_windows_uses_detected_architecture(self, plugins_source, temp_dir):
        """Test that Windows copies the plugins of the game's architecture."""
        target = temp_dir / "game" / "Plugins"
        target.mkdir(parents=True)
        (target / "CSteamworks.dll").write_bytes(pe_image(0x014C))

        assert WindowsPluginInstaller().copy(plugins_source, target) == ["Example.dll"]
        assert (target / "Example.dll").read_text() == "Windows/32/Example.dll"

    def test_mac_copies_bundles(self, plugins_source, temp_dir):
        """Test that Mac bundles are copied as directories."""
        target = temp_dir / "game" / "Plugins"

        assert MacPluginInstaller().copy(plugins_source, target) == ["Example.bundle"]
        assert (target / "Example.bundle" / "Contents" / "Info.plist").exists()

    def test_invalid_tree_copies_nothing(self, plugins_source, temp_dir):
        """Test that validation happens before anything is copied."""
        shutil.rmtree(plugins_source / "MacOS")
        target = temp_dir / "game" / "Plugins"

        with pytest.raises(InvalidPluginHierarchyError):
            LinuxPluginInstaller().copy(plugins_source, target)
        assert not target.exists()

    def test_factory(self):
        """Test selecting the installer of each platform."""
        assert isinstance(create_plugin_installer(Platform.LINUX), LinuxPluginInstaller)
        assert isinstance(create_plugin_installer(Platform.WINDOWS), WindowsPluginInstaller)
        assert isinstance(create_plugin_installer(Platform.MAC), MacPluginInstaller)

    def test_factory_unknown_platform(self):
        """Test that unknown platforms are rejected."""
        with pytest.raises(UnknownPlatformError):
            create_plugin_installer("beos")
