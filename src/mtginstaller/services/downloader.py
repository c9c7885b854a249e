"""
Download Manager for MTGInstaller

This module fetches the component list and the game metadata, and downloads
and extracts component archives (remote or local) into temporary build
directories.
"""

import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mtginstaller.models.component import Component, ComponentVersion, merge_components, parse_components
from mtginstaller.models.metadata import GameMetadata
from mtginstaller.services.paths import PathManager
from mtginstaller.utils.file_ops import FileOperationError, FileOperations

BASE_DOMAIN = "modthegungeon.eu/reloaded"
DOWNLOAD_FILENAME = "DOWNLOAD.zip"
EXTRACTED_DIRNAME = "EXTRACTED"
MAX_DESTINATION_ATTEMPTS = 5

CUSTOM_COMPONENTS_TEMPLATE = """\
# Custom components merged into the official component list.
# A version with the same key as an official one replaces it.
#
# - name: Example
#   author: Someone
#   description: An example component
#   versions:
#     - key: "1.0"
#       name: Example 1.0
#       path: /path/to/Example-1.0.zip
#       release_date: 2018-01-01
#       supported_gungeon: 2.1.9
"""


class DownloadError(Exception):
    """Custom exception for download-related errors."""
    pass


class DownloadNotFoundError(DownloadError):
    """Raised when the server answers 404 Not Found."""
    pass


class DownloadedBuild:
    """
    A downloaded and extracted component archive.

    Used as a context manager, the whole download directory is deleted on exit.
    """

    def __init__(self, source: str, path: Path, extracted_path: Path):
        self.source = source
        self.path = Path(path)
        self.extracted_path = Path(extracted_path)

    def cleanup(self) -> None:
        if self.path.exists():
            shutil.rmtree(self.path)

    def __enter__(self) -> 'DownloadedBuild':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.cleanup()


class Downloader:
    """
    Download management system for MTGInstaller.

    This class handles:
    - Fetching and merging component lists
    - Fetching the game metadata
    - Downloading, copying and extracting component archives
    """

    def __init__(self, paths: PathManager, force_http: bool = False, offline: bool = False,
                 session: Optional[requests.Session] = None):
        """
        Initialize the downloader.

        Args:
            paths: Path manager locating the custom components file
            force_http: Use plain HTTP for the official server
            offline: Never fetch the official component list
            session: HTTP session override
        """
        self.logger = logging.getLogger("MTGInstaller")
        self.paths = paths
        self.offline = offline
        self.file_ops = FileOperations()

        self.base_url = f"{'http' if force_http else 'https'}://{BASE_DOMAIN}"
        self.components_url = f"{self.base_url}/components.yml"
        self.game_metadata_url = f"{self.base_url}/gungeon.yml"

        self.components: Dict[str, Component] = {}
        self._game_metadata: Optional[GameMetadata] = None

        if session is None:
            # HTTP session with retry strategy
            session = requests.Session()
            retry_strategy = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def _get(self, url: str, stream: bool = False) -> requests.Response:
        try:
            response = self.session.get(url, stream=stream, timeout=30)
            response.raise_for_status()
            return response

        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                raise DownloadNotFoundError(f"Error 404 while fetching {url}") from e
            raise DownloadError(f"HTTP error while fetching {url}: {e}") from e

        except requests.exceptions.RequestException as e:
            raise DownloadError(f"Failed to fetch {url}: {e}") from e

    def fetch_text(self, url: str) -> str:
        """
        Fetch a text document.

        Raises:
            DownloadNotFoundError: If the server answers 404
            DownloadError: On any other request failure
        """
        self.logger.debug(f"Fetching {url}")
        return self._get(url).text

    def load_components(self) -> Dict[str, Component]:
        """
        Load the official component list (unless offline) and the custom components file.

        The custom components file is created from a template when missing.
        """
        if self.offline:
            self.logger.info("Offline mode - not fetching the official component list")
        else:
            self.logger.debug(f"components.yml URL: '{self.components_url}'")
            self.add_components_file(self.fetch_text(self.components_url))

        custom_file = self.paths.custom_components_file
        if custom_file.exists():
            self.add_components_file(custom_file.read_text(encoding="utf-8"))
        else:
            self.logger.debug(f"Creating custom components file: {custom_file}")
            custom_file.parent.mkdir(parents=True, exist_ok=True)
            custom_file.write_text(CUSTOM_COMPONENTS_TEMPLATE, encoding="utf-8")

        return self.components

    def add_components_file(self, text: str) -> None:
        """
        Merge a components document into the known components.

        Raises:
            ComponentError: If the document is malformed
        """
        components = parse_components(text)
        for component in components:
            component.versions_loader = self.fetch_text
        merge_components(self.components, components)

    def try_get(self, name: str) -> Optional[Component]:
        return self.components.get(name)

    @property
    def game_metadata(self) -> GameMetadata:
        """Game metadata, fetched on first access."""
        if self._game_metadata is None:
            self._game_metadata = GameMetadata.from_yaml(self.fetch_text(self.game_metadata_url))
        return self._game_metadata

    def generate_unique_destination(self) -> Path:
        """
        Pick a fresh temporary download directory.

        Raises:
            DownloadError: If no unused name was found
        """
        for _ in range(MAX_DESTINATION_ATTEMPTS):
            destination = Path(tempfile.gettempdir()) / f"MTGDOWNLOAD_{uuid.uuid4()}"
            if not destination.exists():
                return destination

        raise DownloadError(f"Couldn't generate unique download destination (tried {MAX_DESTINATION_ATTEMPTS} "
                            f"times). Do you have permissions to the temporary files folder?")

    def download(self, version: ComponentVersion, destination: Optional[Path] = None) -> DownloadedBuild:
        """
        Download (or copy) and extract one component version.

        Args:
            version: Version to download
            destination: Download directory (a unique temporary one by default)

        Returns:
            DownloadedBuild: The extracted build

        Raises:
            DownloadError: If the version has no source or the download fails
        """
        if version.source is None:
            raise DownloadError(f"Version {version.display_name} has neither a URL nor a file path")

        destination = Path(destination) if destination else self.generate_unique_destination()
        created = not destination.exists()
        self.logger.info(f"Downloading {version.display_name} from {version.source} to {destination}")

        extract_path = destination / EXTRACTED_DIRNAME
        zip_path = destination / DOWNLOAD_FILENAME
        extract_path.mkdir(parents=True, exist_ok=True)

        try:
            if version.is_local:
                local_path = Path(version.path).expanduser()
                if not local_path.is_file():
                    raise DownloadError(f"Local archive not found: {local_path}")
                shutil.copyfile(local_path, zip_path)
            else:
                self._download_file(version.url, zip_path)

            try:
                self.file_ops.extract_archive(zip_path, extract_path)
            except FileOperationError as e:
                raise DownloadError(str(e)) from e
        except DownloadError:
            # Directories created by this call are not left behind half-filled
            if created:
                self.logger.debug(f"Removing failed download directory {destination}")
                shutil.rmtree(destination, ignore_errors=True)
            raise

        return DownloadedBuild(version.source, destination, extract_path)

    def _download_file(self, url: str, file_path: Path) -> None:
        response = self._get(url, stream=True)
        downloaded = 0

        try:
            with open(file_path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:  # Filter out keep-alive chunks
                        f.write(chunk)
                        downloaded += len(chunk)
        except requests.exceptions.RequestException as e:
            raise DownloadError(f"Download of {url} was interrupted: {e}") from e
        finally:
            response.close()

        self.logger.debug(f"Downloaded {downloaded} bytes to {file_path}")
