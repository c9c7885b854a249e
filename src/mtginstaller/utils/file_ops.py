"""
File Operations Utilities for MTGInstaller

This module provides the file operations shared by the backup manager, the
component installer and the downloader: archive extraction, overwrite-safe
recursive copies and directory wiping.
"""

import logging
import shutil
import zipfile
from pathlib import Path
from typing import Callable, Optional


class FileOperationError(Exception):
    """Custom exception for file operation errors."""
    pass


class FileOperations:
    """
    File operations utility class for MTGInstaller.

    This class handles:
    - ZIP archive extraction
    - Recursive copies that always overwrite existing targets
    - Directory wiping and recreation
    """

    def __init__(self):
        """Initialize the file operations helper."""
        self.logger = logging.getLogger("MTGInstaller")

    def extract_archive(self, archive_path: Path, dest_dir: Path,
                        progress_callback: Optional[Callable] = None) -> None:
        """
        Extract a zip archive.

        Args:
            archive_path: Path to the archive file
            dest_dir: Destination directory for extraction
            progress_callback: Optional progress callback function

        Raises:
            FileOperationError: If the archive is missing or cannot be extracted
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.exists():
            raise FileOperationError(f"Archive not found: {archive_path}")

        dest_dir.mkdir(parents=True, exist_ok=True)
        self.logger.debug(f"Extracting {archive_path.name} to {dest_dir}")

        try:
            with zipfile.ZipFile(archive_path, 'r') as zip_ref:
                members = zip_ref.infolist()
                total_files = len(members)

                for i, member in enumerate(members):
                    zip_ref.extract(member, dest_dir)

                    if progress_callback and total_files > 0:
                        progress_callback((i + 1) / total_files * 100,
                                          f"Extracting files... ({i + 1}/{total_files})")

        except (zipfile.BadZipFile, OSError) as e:
            raise FileOperationError(f"ZIP extraction failed for {archive_path}: {e}") from e

    def copy(self, source: Path, destination: Path) -> None:
        """
        Copy a file or a directory tree, overwriting existing targets.

        Directories are copied file by file, recursing into subdirectories, so
        files already present in the destination but absent from the source are
        left alone.

        Args:
            source: File or directory to copy
            destination: Target path (file path or directory path)

        Raises:
            FileOperationError: If the source does not exist
        """
        source = Path(source)
        destination = Path(destination)

        if source.is_dir():
            destination.mkdir(parents=True, exist_ok=True)

            for item in source.iterdir():
                self.copy(item, destination / item.name)

        elif source.exists():
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)

        else:
            raise FileOperationError(f"Source does not exist or could not be found: {source}")

    def copy_directory_contents(self, src_dir: Path, dest_dir: Path) -> int:
        """
        Copy every entry of a directory into another directory.

        Args:
            src_dir: Directory whose entries are copied
            dest_dir: Directory receiving the entries

        Returns:
            int: Number of top-level entries copied
        """
        count = 0
        dest_dir.mkdir(parents=True, exist_ok=True)

        for item in Path(src_dir).iterdir():
            self.logger.debug(f"Copying {item.name} to {dest_dir}")
            self.copy(item, dest_dir / item.name)
            count += 1

        return count

    def wipe_directory(self, dir_path: Path) -> None:
        """
        Delete a directory recursively and recreate it empty.

        Args:
            dir_path: Directory to wipe
        """
        path = Path(dir_path)

        if path.exists():
            shutil.rmtree(path)

        path.mkdir(parents=True, exist_ok=True)

    def remove(self, path: Path) -> bool:
        """
        Remove a file or a directory tree if it exists.

        Args:
            path: Path to remove

        Returns:
            bool: True if something was removed
        """
        path = Path(path)

        if path.is_dir():
            shutil.rmtree(path)
            return True

        if path.exists():
            path.unlink()
            return True

        return False
