"""
Tests for the installer frontend controller.
"""

import zipfile

import pytest

from mtginstaller.controllers.installer_frontend import InstallationFailedError, InstallerFrontend
from mtginstaller.models.component import ComponentRequest
from mtginstaller.services.autodetect import Architecture, Autodetector, Platform
from mtginstaller.services.downloader import Downloader
from mtginstaller.services.events import Events
from mtginstaller.services.paths import PathManager
from mtginstaller.services.settings import InstallerOptions, Settings
from conftest import FakePatchEngine

COMPONENTS_TEMPLATE = """
- name: Example
  author: Someone
  versions:
    - key: "1.0"
      name: Example 1.0
      path: {archive}
      supported_gungeon: "{supported}"
      requires_exe_patch: true
- name: Other
  versions:
    - key: "2.0"
      name: Other 2.0
      path: {other}
"""


def make_zip(path, files):
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


@pytest.fixture
def paths(temp_dir):
    manager = PathManager(app_dir=temp_dir / "app")
    manager.config_dir = temp_dir / "config"
    manager.initialize()
    return manager


@pytest.fixture
def write_components(temp_dir, paths):
    """Write the custom components file for a given supported game version."""

    def write(supported="2.1.9"):
        archive = make_zip(temp_dir / "Example-1.0.zip", {
            "Example.dll": b"api",
            "Assembly-CSharp.Example.mm.dll": b"patch",
            "readme.txt": b"hello",
        })
        other = make_zip(temp_dir / "Other-2.0.zip", {"Other.dll": b"other"})
        paths.custom_components_file.write_text(
            COMPONENTS_TEMPLATE.format(archive=archive, other=other, supported=supported))

    write()
    return write


@pytest.fixture
def make_frontend(paths, game_metadata, fake_engine, mock_event_manager, temp_dir, write_components):
    """Factory creating an offline frontend for the fake installation."""

    def make(options=InstallerOptions.NONE, settings=None, engine=None):
        downloader = Downloader(paths, offline=True)
        downloader._game_metadata = game_metadata
        frontend = InstallerFrontend(
            settings or Settings(),
            downloader,
            options,
            autodetector=Autodetector(Platform.LINUX, Architecture.X86_64, home=temp_dir),
            engine_factory=lambda: engine or fake_engine,
            event_manager=mock_event_manager,
        )
        frontend.load_components()
        return frontend

    return make


def emitted(mock_event_manager):
    return [c.args[0] for c in mock_event_manager.emit.call_args_list]


class TestResolve:
    """Tests for resolving component requests."""

    def test_resolve_latest_and_explicit(self, make_frontend):
        """Test resolving with and without a version key."""
        frontend = make_frontend()

        resolved = frontend.resolve(ComponentRequest.parse_list("Example;Other@2.0"))

        assert [(c.name, v.key) for c, v in resolved] == [("Example", "1.0"), ("Other", "2.0")]

    def test_unknown_component(self, make_frontend):
        """Test that unknown components are rejected."""
        with pytest.raises(InstallationFailedError, match="Component Missing doesn't exist in the list"):
            make_frontend().resolve([ComponentRequest("Missing")])

    def test_duplicate_component(self, make_frontend):
        """Test that a component can only be requested once."""
        with pytest.raises(InstallationFailedError, match="Duplicate Example component"):
            make_frontend().resolve(ComponentRequest.parse_list("Example;Example@1.0"))

    def test_unknown_version(self, make_frontend):
        """Test that unknown versions are rejected."""
        with pytest.raises(InstallationFailedError, match="Version 9.9 of component Example doesn't exist"):
            make_frontend().resolve([ComponentRequest("Example", "9.9")])


class TestComponentFiles:
    """Tests for extra component files."""

    def test_settings_files_are_loaded(self, make_frontend, temp_dir):
        """Test that files listed in the settings are merged."""
        extra = temp_dir / "extra.yml"
        extra.write_text("- name: Extra\n  versions: []\n")

        frontend = make_frontend(settings=Settings(custom_component_files=[str(extra)]))

        assert frontend.try_get_component("Extra") is not None

    def test_missing_file(self, make_frontend, temp_dir):
        """Test that a missing file is reported."""
        with pytest.raises(InstallationFailedError, match="doesn't exist - verify your settings"):
            make_frontend().load_components_file(temp_dir / "missing.yml")

    def test_malformed_file(self, make_frontend, temp_dir):
        """Test that a malformed file is reported."""
        broken = temp_dir / "broken.yml"
        broken.write_text("name: [unterminated")
        with pytest.raises(InstallationFailedError, match="is malformed"):
            make_frontend().load_components_file(broken)


class TestDownload:
    """Tests for downloading into named folders."""

    def test_download(self, make_frontend, temp_dir):
        """Test that a version is extracted into its folder."""
        build = make_frontend().download(ComponentRequest("Other"), destination=temp_dir / "Other 2.0")

        assert (build.extracted_path / "Other.dll").read_bytes() == b"other"

    def test_existing_folder(self, make_frontend, temp_dir):
        """Test that an existing download is only replaced when forced."""
        frontend = make_frontend()
        dest = temp_dir / "Other 2.0"
        dest.mkdir()
        (dest / "stale").write_text("old")

        with pytest.raises(InstallationFailedError, match="use --force to redownload"):
            frontend.download(ComponentRequest("Other"), destination=dest)

        frontend.download(ComponentRequest("Other"), force=True, destination=dest)
        assert not (dest / "stale").exists()


class TestInstall:
    """Tests for the install operation."""

    def test_install(self, make_frontend, game_installation, mock_event_manager):
        """Test a complete installation."""
        frontend = make_frontend()

        frontend.install(ComponentRequest.parse_list("Example"), game_installation.exe_file)

        managed = game_installation.managed_dir
        assert (managed / "Example.dll").read_bytes() == b"api"
        assert (managed / "Assembly-CSharp.dll").read_bytes() == b"original csharp+Assembly-CSharp.Example.mm.dll"
        assert b"Assembly-CSharX" in game_installation.exe_file.read_bytes()
        assert (game_installation.root_dir / ".ETGModBackup" / "Root" / "EtG.x86_64").read_bytes() == \
            b"\x7fELF...Assembly-CSharp..."
        assert frontend.get_patch_info(game_installation.exe_file) == ["Example Example 1.0"]

        events = emitted(mock_event_manager)
        assert events[0] == Events.OPERATION_STARTED
        assert Events.COMPONENT_INSTALLED in events
        assert events[-1] == Events.OPERATION_COMPLETED

    def test_reinstall_starts_from_pristine_files(self, make_frontend, game_installation):
        """Test that a second installation restores the backup first."""
        frontend = make_frontend()
        frontend.install(ComponentRequest.parse_list("Example"), game_installation.exe_file)
        frontend.install(ComponentRequest.parse_list("Other"), game_installation.exe_file)

        managed = game_installation.managed_dir
        assert not (managed / "Example.dll").exists()
        assert (managed / "Assembly-CSharp.dll").read_bytes() == b"original csharp"
        assert game_installation.exe_file.read_bytes() == b"\x7fELF...Assembly-CSharp..."
        assert frontend.get_patch_info(game_installation.exe_file) == ["Other Other 2.0"]

    def test_exe_not_patched_without_request(self, make_frontend, game_installation):
        """Test that the executable is left alone unless a version asks for it."""
        make_frontend().install(ComponentRequest.parse_list("Other"), game_installation.exe_file)
        assert game_installation.exe_file.read_bytes() == b"\x7fELF...Assembly-CSharp..."

    def test_version_mismatch(self, make_frontend, write_components, game_installation):
        """Test that a component for a newer game is refused."""
        write_components(supported="2.2.0")

        with pytest.raises(InstallationFailedError, match="appears to be older"):
            make_frontend().install(ComponentRequest.parse_list("Example"), game_installation.exe_file)

    def test_skip_version_checks(self, make_frontend, write_components, game_installation):
        """Test that version checks can be skipped."""
        write_components(supported="2.2.0")

        make_frontend(InstallerOptions.SKIP_VERSION_CHECKS).install(
            ComponentRequest.parse_list("Example"), game_installation.exe_file)

        assert (game_installation.managed_dir / "Example.dll").exists()

    def test_engine_failure(self, make_frontend, game_installation, mock_event_manager):
        """Test that patching failures surface as one installation error."""
        frontend = make_frontend(engine=FakePatchEngine(fail_on_write=True))

        with pytest.raises(InstallationFailedError, match="Failed to patch Assembly-CSharp"):
            frontend.install(ComponentRequest.parse_list("Example"), game_installation.exe_file)

        assert Events.OPERATION_COMPLETED not in emitted(mock_event_manager)

    def test_executable_not_found(self, make_frontend):
        """Test that a missing executable is reported with the expected name."""
        with pytest.raises(InstallationFailedError, match="Can't find executable.*EtG.x86_64"):
            make_frontend().install(ComponentRequest.parse_list("Example"))

    def test_executable_from_settings(self, make_frontend, game_installation):
        """Test that the configured executable is used when none is given."""
        frontend = make_frontend(settings=Settings(executable_path=str(game_installation.exe_file)))
        frontend.install(ComponentRequest.parse_list("Other"))
        assert (game_installation.managed_dir / "Other.dll").exists()


class TestUninstall:
    """Tests for the uninstall operation."""

    def test_uninstall(self, make_frontend, game_installation):
        """Test that uninstalling restores the pristine files."""
        frontend = make_frontend()
        frontend.install(ComponentRequest.parse_list("Example"), game_installation.exe_file)

        frontend.uninstall(game_installation.exe_file)

        assert not (game_installation.managed_dir / "Example.dll").exists()
        assert (game_installation.managed_dir / "Assembly-CSharp.dll").read_bytes() == b"original csharp"
        assert frontend.get_patch_info(game_installation.exe_file) == []

    def test_uninstall_without_backup(self, make_frontend, game_installation):
        """Test that uninstalling needs a backup."""
        with pytest.raises(InstallationFailedError, match="No backup exists"):
            make_frontend().uninstall(game_installation.exe_file)

    def test_legacy_mod(self, make_frontend, game_installation):
        """Test detecting a legacy installation."""
        (game_installation.managed_dir / "ModBackup").mkdir()
        assert make_frontend().has_legacy_mod(game_installation.exe_file) is True
