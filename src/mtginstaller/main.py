#!/usr/bin/env python3
"""
Main entry point for MTGInstaller

This module provides the command-line interface: argument parsing, logging
setup and one handler per subcommand. Every command returns 0 on success and
1 on a handled failure, whose message is written to standard error.
"""

import argparse
import logging
import os
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from mtginstaller.controllers.installer_frontend import InstallationFailedError, InstallerFrontend
from mtginstaller.models.component import ComponentError, ComponentRequest
from mtginstaller.services.autodetect import Architecture, Autodetector, UnknownArchitectureError
from mtginstaller.services.downloader import DownloadError, Downloader
from mtginstaller.services.paths import PathManager
from mtginstaller.services.settings import InstallerOptions, Settings
from mtginstaller.utils.helpers import parse_bool

VERBOSE_ENV = "MTG_VERBOSE"

# Failures reported as a plain message
USER_ERRORS = (InstallationFailedError, ComponentError, DownloadError, UnknownArchitectureError)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the application logger once."""
    logger = logging.getLogger("MTGInstaller")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s - %(module)s [%(levelname)s] %(message)s', datefmt='%H:%M:%S')
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    return logger


def write_error(error: BaseException, verbose: bool = False) -> None:
    print(str(error), file=sys.stderr)
    if verbose:
        traceback.print_exception(type(error), error, error.__traceback__, file=sys.stderr)


def _options(args: argparse.Namespace) -> InstallerOptions:
    options = InstallerOptions.NONE
    flags = [
        ("http", InstallerOptions.HTTP),
        ("offline", InstallerOptions.OFFLINE),
        ("force_backup", InstallerOptions.FORCE_BACKUP),
        ("skip_version_checks", InstallerOptions.SKIP_VERSION_CHECKS),
        ("leave_patch_dlls", InstallerOptions.LEAVE_PATCH_DLLS),
    ]
    for attribute, flag in flags:
        if getattr(args, attribute, False):
            options |= flag
    return options


def _autodetector(args: argparse.Namespace) -> Autodetector:
    architecture = getattr(args, "architecture", None)
    return Autodetector(architecture=Architecture.parse(architecture) if architecture else None)


def _frontend(args: argparse.Namespace, paths: PathManager, settings: Settings) -> InstallerFrontend:
    logger = logging.getLogger("MTGInstaller")
    frontend = InstallerFrontend.create(settings, paths, _options(args), autodetector=_autodetector(args))

    for component_file in getattr(args, "components_files", None) or []:
        logger.debug(f"Adding custom component file: {component_file}")
        frontend.load_components_file(component_file)

    return frontend


def download_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    frontend = _frontend(args, paths, settings)
    build = frontend.download(ComponentRequest(args.component, args.version), force=args.force)
    print(build.extracted_path)
    return 0


def autodetect_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    autodetector = _autodetector(args)
    print(f"Platform: {autodetector.platform.value}")
    print(f"Architecture: {autodetector.architecture.value}")

    path = autodetector.exe_path
    print(path if path is not None else "[Couldn't find the executable]")
    return 0


def components_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    frontend = _frontend(args, paths, settings)
    for component in frontend.available_components.values():
        print(component)
    return 0


def component_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    frontend = _frontend(args, paths, settings)
    component = frontend.try_get_component(args.name)
    if component is None:
        print(f"Component {args.name} doesn't exist or isn't in the official list.", file=sys.stderr)
        return 1

    print(f"Name: {component.name}")
    print(f"Author: {component.author}")
    if "\n" in component.description:
        print("Description:")
        print("  " + component.description.replace("\n", "\n  "))
    else:
        print(f"Description: {component.description}")
    print("Versions:")
    for version in component.versions:
        print(f"  {version}")
    return 0


def install_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    requests = ComponentRequest.parse_list(args.components)
    frontend = _frontend(args, paths, settings)
    frontend.install(requests, args.executable)
    return 0


def uninstall_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    # Restoring needs no component list
    frontend = InstallerFrontend(settings, Downloader(paths, offline=True), autodetector=_autodetector(args))
    frontend.uninstall(args.executable)
    return 0


def _validate_executable(path: str, exe_name: Optional[str]) -> Optional[str]:
    """Normalize an executable path, or log why it is invalid and return None."""
    logger = logging.getLogger("MTGInstaller")
    exe_path = Path(path).expanduser()

    if exe_path.is_dir():
        candidate = exe_path / (exe_name or "")
        if exe_name and candidate.is_file():
            exe_path = candidate
        else:
            logger.error(f"Provided executable path '{path}' is actually a directory (and it doesn't contain {exe_name})")
            return None

    if not exe_path.is_file():
        logger.error(f"File '{exe_path}' doesn't exist")
        return None

    if exe_path.name != exe_name:
        logger.error(f"File '{exe_path}' is either not a Gungeon executable or a Gungeon executable for a "
                     f"different OS and/or platform (expected {exe_name})")
        return None

    return str(exe_path)


def settings_main(args: argparse.Namespace, paths: PathManager, settings: Settings) -> int:
    logger = logging.getLogger("MTGInstaller")

    if args.clear_components:
        settings.custom_component_files = []
    if args.clear_executable:
        settings.executable_path = None

    for component_file in args.components_files or []:
        if component_file in settings.custom_component_files:
            logger.warning(f"The custom components file list already contains entry '{component_file}' - ignoring")
        else:
            settings.custom_component_files.append(component_file)

    if args.executable is not None:
        exe_path = _validate_executable(args.executable, Autodetector().exe_name)
        if exe_path is None:
            return 1
        settings.executable_path = exe_path

    booleans = ["force_http", "force_backup", "skip_version_checks", "leave_patch_dlls", "offline"]
    for name in booleans:
        value = parse_bool(getattr(args, name))
        if value is not None:
            setattr(settings, name, value)

    if args.patch_engine is not None:
        settings.patch_engine_command = args.patch_engine or None

    if not settings.save(paths.settings_file):
        print(f"Failed to save settings to {paths.settings_file}", file=sys.stderr)
        return 1

    print(settings.user_friendly())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mtginstaller", description="Mod the Gungeon component installer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging and error tracebacks")
    subparsers = parser.add_subparsers(dest="command", required=True)

    download = subparsers.add_parser("download", help="Download and extract a component version")
    download.add_argument("component", help="The component")
    download.add_argument("version", nargs="?", help="The version (default is the latest one)")
    download.add_argument("-f", "--force", action="store_true",
                          help="Force a redownload (remove the target directory if it already exists)")
    download.add_argument("--http", action="store_true", help="Force use of insecure HTTP instead of HTTPS")
    download.add_argument("--offline", action="store_true", help="Only use custom component files")
    download.set_defaults(func=download_main)

    autodetect = subparsers.add_parser("autodetect", help="Autodetect the platform and location of the game")
    autodetect.add_argument("-a", "--architecture", help="Override the detected architecture (x86 or x86_64)")
    autodetect.set_defaults(func=autodetect_main)

    components = subparsers.add_parser("components", help="List the available components")
    components.add_argument("-c", "--components", dest="components_files", action="append",
                            help="Add custom components through a YAML file")
    components.add_argument("--http", action="store_true", help="Force use of insecure HTTP instead of HTTPS")
    components.add_argument("--offline", action="store_true", help="Only use custom component files")
    components.set_defaults(func=components_main)

    component = subparsers.add_parser("component", help="Show detailed information about a component")
    component.add_argument("name", help="Name of a component")
    component.add_argument("-c", "--components", dest="components_files", action="append",
                           help="Add custom components through a YAML file")
    component.add_argument("--http", action="store_true", help="Force use of insecure HTTP instead of HTTPS")
    component.add_argument("--offline", action="store_true", help="Only use custom component files")
    component.set_defaults(func=component_main)

    install = subparsers.add_parser("install", help="Install components")
    install.add_argument("components",
                         help="Semicolon separated list of components and versions (e.g. 'ETGMod@0.3;Example@1.0')")
    install.add_argument("-e", "--executable", help="Path to the executable (required if autodetection fails)")
    install.add_argument("-b", "--force-backup", action="store_true",
                         help="Force a backup to be made (tampered files will end up in the backup!)")
    install.add_argument("-f", "--force", dest="skip_version_checks", action="store_true",
                         help="Skip version checks (unsupported!)")
    install.add_argument("-d", "--leave-patch-dlls", action="store_true",
                         help="Don't delete the .mm.dll assemblies after finishing patching")
    install.add_argument("-c", "--components", dest="components_files", action="append",
                         help="Add custom components through a YAML file")
    install.add_argument("-a", "--architecture", help="Override the detected architecture (x86 or x86_64)")
    install.add_argument("--http", action="store_true", help="Force use of insecure HTTP instead of HTTPS")
    install.add_argument("--offline", action="store_true", help="Only use custom component files")
    install.set_defaults(func=install_main)

    uninstall = subparsers.add_parser("uninstall", help="Revert all components")
    uninstall.add_argument("-e", "--executable", help="Path to the executable (required if autodetection fails)")
    uninstall.add_argument("-a", "--architecture", help="Override the detected architecture (x86 or x86_64)")
    uninstall.set_defaults(func=uninstall_main)

    settings = subparsers.add_parser("settings", help="Show or change the settings")
    settings.add_argument("--executable", help="Path to the game executable (or its directory)")
    settings.add_argument("--clear-executable", action="store_true", help="Go back to autodetecting the executable")
    settings.add_argument("-c", "--components", dest="components_files", action="append",
                          help="Always load this custom components file")
    settings.add_argument("--clear-components", action="store_true", help="Forget all custom components files")
    settings.add_argument("--force-http", metavar="Y/N", help="Always use insecure HTTP")
    settings.add_argument("--force-backup", metavar="Y/N", help="Always force a new backup")
    settings.add_argument("--skip-version-checks", metavar="Y/N", help="Always skip version checks")
    settings.add_argument("--leave-patch-dlls", metavar="Y/N", help="Always keep the .mm.dll assemblies")
    settings.add_argument("--offline", metavar="Y/N", help="Never fetch the official component list")
    settings.add_argument("--patch-engine", help="Command running the assembly patcher (empty to unset)")
    settings.set_defaults(func=settings_main)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    verbose = args.verbose or os.environ.get(VERBOSE_ENV) is not None
    logger = setup_logging(verbose)

    try:
        paths = PathManager()
        paths.initialize()
        settings = Settings.load(paths.settings_file)

        return args.func(args, paths, settings)

    except USER_ERRORS as e:
        write_error(e, verbose)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user (Ctrl+C)")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=verbose)
        write_error(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
