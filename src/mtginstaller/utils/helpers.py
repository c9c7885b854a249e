"""
Helper Functions for MTGInstaller

This module provides helper functions for JSON and YAML document handling and
other small utility functions.
"""

import json
import logging
from typing import Any, Dict, Optional
from pathlib import Path

import yaml


def load_json_file(file_path: str | Path) -> Optional[Dict[str, Any]]:
    """
    Load a JSON file.

    Args:
        file_path: Path to the JSON file

    Returns:
        dict: JSON data or None if failed to load
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except Exception as e:
        logging.getLogger("MTGInstaller").error(f"Failed to load JSON file {file_path}: {e}")
        return None


def save_json_file(file_path: str | Path, data: Dict[str, Any]) -> bool:
    """
    Save data to a JSON file.

    Args:
        file_path: Path to save the JSON file
        data: Data to save

    Returns:
        bool: True if saved successfully
    """
    try:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4, ensure_ascii=False)

        return True

    except Exception as e:
        logging.getLogger("MTGInstaller").error(f"Failed to save JSON file {file_path}: {e}")
        return False


def load_yaml_text(text: str) -> Any:
    """
    Parse a YAML document.

    Raises:
        yaml.YAMLError: If the document is malformed
    """
    return yaml.safe_load(text)


def load_yaml_file(file_path: str | Path) -> Any:
    """
    Parse a YAML file.

    Raises:
        OSError: If the file cannot be read
        yaml.YAMLError: If the document is malformed
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """
    Parse a yes/no style command-line value.

    Returns:
        bool: Parsed value, or None if the value is missing or unrecognized
    """
    if value is None:
        return None

    normalized = value.strip().lower()
    if normalized in ("y", "yes", "true", "t"):
        return True
    if normalized in ("n", "no", "false", "f"):
        return False

    logging.getLogger("MTGInstaller").error(f"Unknown boolean value: {value}")
    return None
