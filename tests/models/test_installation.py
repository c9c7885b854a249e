"""
Tests for the game installation model.
"""

import pytest

from mtginstaller.models.installation import GameInstallation, InstallationError, read_version_lines
from mtginstaller.services.autodetect import Platform


class TestVersionDetection:
    """Tests for reading version.txt."""

    def test_single_line_version(self, game_installation):
        """Test a version file holding only the version."""
        assert game_installation.version == "2.1.9"
        assert game_installation.version_name == "2.1.9"

    def test_two_line_version(self, game_dir):
        """Test a version file holding a display name and the version."""
        (game_dir / "EtG_Data" / "StreamingAssets" / "version.txt").write_text("Supply Drop\n2.1.3\n")

        installation = GameInstallation.from_executable(game_dir / "EtG.x86_64", Platform.LINUX)

        assert installation.version == "2.1.3"
        assert installation.version_name == "Supply Drop"

    def test_missing_version_file(self, temp_dir):
        """Test that a missing version file is an error."""
        with pytest.raises(InstallationError, match="version file not found"):
            read_version_lines(temp_dir)


class TestInstallationLayout:
    """Tests for directory resolution."""

    def test_linux_layout(self, game_dir):
        """Test the directories of a Linux installation."""
        installation = GameInstallation.from_executable(game_dir / "EtG.x86_64", Platform.LINUX)

        assert installation.root_dir == game_dir
        assert installation.managed_dir == game_dir / "EtG_Data" / "Managed"
        assert installation.plugins_dir == game_dir / "EtG_Data" / "Plugins"
        assert installation.patched_exe_file == game_dir / "EtG.patched"

    def test_mac_layout(self, temp_dir):
        """Test that the data directory of a Mac bundle lives in Resources."""
        macos = temp_dir / "EtG_OSX.app" / "Contents" / "MacOS"
        macos.mkdir(parents=True)
        (macos / "EtG_OSX").write_bytes(b"macho")

        installation = GameInstallation.from_executable(macos / "EtG_OSX", Platform.MAC, detect_version=False)

        assert installation.data_dir == temp_dir / "EtG_OSX.app" / "Contents" / "Resources" / "Data"

    def test_missing_executable(self, temp_dir):
        """Test that the executable must exist."""
        with pytest.raises(InstallationError, match="executable not found"):
            GameInstallation.from_executable(temp_dir / "EtG.exe", Platform.WINDOWS)


class TestPatchRecord:
    """Tests for the installed patches record."""

    def test_record_and_read(self, game_installation):
        """Test appending to the patch record."""
        assert game_installation.read_patches() == []

        game_installation.record_patch("ETGMod 0.3")
        game_installation.record_patch("Example 1.0")

        assert game_installation.read_patches() == ["ETGMod 0.3", "Example 1.0"]

    def test_legacy_install(self, game_installation):
        """Test that a legacy ModBackup directory wins over the record."""
        game_installation.record_patch("ETGMod 0.3")
        (game_installation.managed_dir / "ModBackup").mkdir()

        assert game_installation.has_legacy_mod is True
        assert game_installation.read_patches() == ["ETGMod Legacy"]
