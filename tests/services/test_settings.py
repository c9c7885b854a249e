"""
Tests for persisted settings and the settings directory.
"""

import json

from mtginstaller.services.paths import SETTINGS_DIR_ENV, PathManager
from mtginstaller.services.settings import InstallerOptions, Settings


class TestSettings:
    """Tests for loading and saving settings."""

    def test_missing_file_saves_defaults(self, temp_dir):
        """Test that a missing settings file is created with defaults."""
        path = temp_dir / "settings.json"

        settings = Settings.load(path)

        assert settings == Settings()
        assert json.loads(path.read_text())["force_backup"] is False

    def test_round_trip(self, temp_dir):
        """Test that saved settings load back unchanged."""
        path = temp_dir / "settings.json"
        settings = Settings(executable_path="/games/EtG.x86_64", offline=True,
                            custom_component_files=["/tmp/extra.yml"], patch_engine_command="monomod-job")

        assert settings.save(path) is True
        assert Settings.load(path) == settings

    def test_unknown_keys_ignored(self):
        """Test that keys from other versions do not break loading."""
        settings = Settings.from_dict({"force_http": True, "ancient_option": 3})
        assert settings.force_http is True

    def test_unreadable_file(self, temp_dir, caplog):
        """Test that a corrupt file falls back to defaults."""
        path = temp_dir / "settings.json"
        path.write_text("[1, 2")

        assert Settings.load(path) == Settings()
        assert "unreadable" in caplog.text

    def test_options(self):
        """Test the installer options derived from settings."""
        settings = Settings(force_backup=True, leave_patch_dlls=True)
        options = settings.options()

        assert InstallerOptions.FORCE_BACKUP in options
        assert InstallerOptions.LEAVE_PATCH_DLLS in options
        assert InstallerOptions.HTTP not in options
        assert Settings().options() == InstallerOptions.NONE

    def test_user_friendly(self):
        """Test the sectioned settings summary."""
        text = Settings(force_http=True, custom_component_files=["a.yml"]).user_friendly()

        assert "[Network]" in text
        assert "Force HTTP: yes" in text
        assert "Offline: no" in text
        assert "Executable path: (autodetect)" in text
        assert "  - a.yml" in text


class TestPathManager:
    """Tests for settings directory resolution."""

    def test_default_layout(self, temp_dir, monkeypatch):
        """Test the directories under the application directory."""
        monkeypatch.delenv(SETTINGS_DIR_ENV, raising=False)
        paths = PathManager(app_dir=temp_dir / "app")

        assert paths.initialize() is True
        assert paths.config_dir.is_dir()
        assert paths.settings_file == temp_dir / "app" / "config" / "settings.json"
        assert paths.custom_components_file.name == "custom-components.yml"

    def test_environment_override(self, temp_dir, monkeypatch):
        """Test that the settings directory can be set from the environment."""
        monkeypatch.setenv(SETTINGS_DIR_ENV, str(temp_dir / "elsewhere"))
        paths = PathManager(app_dir=temp_dir / "app")

        assert paths.config_dir == temp_dir / "elsewhere"
