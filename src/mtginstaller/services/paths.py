"""
Path Management System for MTGInstaller

This module provides path management for the per-user settings directory,
the custom components file and temporary download directories.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

SETTINGS_DIR_ENV = "MTG_SETTINGS_DIR"
SETTINGS_FILENAME = "settings.json"
CUSTOM_COMPONENTS_FILENAME = "custom-components.yml"


class PathManager:
    """
    Path management system for MTGInstaller.

    This class handles:
    - Application directory structure
    - Settings and custom components file locations
    - Temporary directories for downloads
    """

    def __init__(self, app_dir: Optional[Path] = None, app_name: str = "MTGInstaller"):
        """
        Initialize the path manager.

        Args:
            app_dir: Base directory override (defaults to ``~/.<app_name>``)
            app_name: Name of the application for directory naming
        """
        self.logger = logging.getLogger("MTGInstaller")

        self.app_dir = Path(app_dir) if app_dir else Path.home() / f".{app_name.lower()}"

        env_dir = os.environ.get(SETTINGS_DIR_ENV)
        self.config_dir = Path(env_dir) if env_dir else self.app_dir / "config"

        self.temp_dir = Path(tempfile.gettempdir())

    def initialize(self) -> bool:
        """
        Create the directory structure.

        Returns:
            bool: True if initialization was successful
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.logger.debug(f"Settings directory: {self.config_dir}")
            return True

        except OSError as e:
            self.logger.error(f"Failed to create settings directory {self.config_dir}: {e}")
            return False

    @property
    def settings_file(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    @property
    def custom_components_file(self) -> Path:
        return self.config_dir / CUSTOM_COMPONENTS_FILENAME
