# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Verified download of the Ubuntu cloud image.

The checksum manifest is fetched fresh on every run. The image itself is
reused when a local copy already matches the manifest; otherwise it is
downloaded, and re-downloaded on mismatch, a bounded number of times.
"""

from typing import Callable, Optional, Union
from pathlib import Path

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from ..errors import ChecksumMismatch, IntegrityError
from ..MODELS.image_artifacts import BaseImage, ChecksumManifest, ManifestEntry
from ..MODELS.run_config import MANIFEST_NAME, RunConfig
from ..PARSERS.manifest_parser import ManifestParser
from ..UTILS.console import Console
from .http_fetcher import HttpFetcher, sha256_file


class ImageAcquirer:
    """
    Produces a local base image whose SHA-256 matches the published manifest.
    """

    def __init__(
        self,
        config: RunConfig,
        fetcher: Optional[HttpFetcher] = None,
        hasher: Callable[[Union[str, Path]], str] = sha256_file,
        console: Optional[Console] = None,
    ):
        """
        Initialize the acquirer.

        Args:
            config: Run configuration
            fetcher: Anything with a ``fetch(url, dest)`` method
            hasher: Function returning the hex SHA-256 of a file
            console: Status output
        """
        self.config = config
        self.fetcher = fetcher or HttpFetcher(timeout=config.download_timeout)
        self.hasher = hasher
        self.console = console or Console()

    def acquire(self) -> BaseImage:
        """
        Fetch the manifest, then download and verify the base image.

        Returns:
            The verified base image

        Raises:
            IntegrityError: If the manifest has no entry for the image, or the
                image never matched within the allowed attempts.
        """
        manifest = self.refresh_manifest()
        entry = manifest.lookup(self.config.cloud_image)
        if entry is None:
            self.console.info("Invalid SHA256SUM file")
            raise IntegrityError(
                f"{MANIFEST_NAME} from {self.config.image_source} has no entry for {self.config.cloud_image}"
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_download_attempts),
            retry=retry_if_exception_type(ChecksumMismatch),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    image = self._download_and_verify(entry)
        except ChecksumMismatch as e:
            raise IntegrityError(
                f"{self.config.cloud_image} failed verification "
                f"{self.config.max_download_attempts} times: {e}"
            ) from e

        self.console.ok("Verify the checksum for Ubuntu cloud image.")
        return image

    def refresh_manifest(self) -> ChecksumManifest:
        """
        Replace any local manifest with a fresh copy and parse it.

        Returns:
            The parsed manifest
        """
        manifest_path = self.config.manifest_path
        if manifest_path.exists():
            manifest_path.unlink()

        self.fetcher.fetch(self.config.source_url(MANIFEST_NAME), manifest_path)
        return ManifestParser.parse(str(manifest_path))

    def _download_and_verify(self, entry: ManifestEntry) -> BaseImage:
        """One pass of the verify loop: download if missing, then hash."""
        image_path = self.config.base_image_path
        if not image_path.exists():
            self.fetcher.fetch(self.config.source_url(self.config.cloud_image), image_path)

        actual = self.hasher(image_path)
        if actual != entry.sha256:
            self.console.info("Invalid download file according to sha256sum, re-download")
            image_path.unlink()
            raise ChecksumMismatch(entry.filename, entry.sha256, actual)

        return BaseImage(path=image_path, sha256=actual)
