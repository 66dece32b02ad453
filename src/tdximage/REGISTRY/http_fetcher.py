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
HTTP downloads of checksum manifests and cloud images.
"""

import hashlib
import shutil
from pathlib import Path
from typing import Optional, Union
from urllib.request import urlopen, Request
from urllib.error import HTTPError, URLError

from ..errors import ToolInvocationError

CHUNK_SIZE = 1024 * 1024


class HttpFetcher:
    """
    Streams remote files to disk.
    """

    def __init__(self, timeout: Optional[float] = None, user_agent: str = "tdximage"):
        """
        Initialize the fetcher.

        Args:
            timeout: Socket timeout in seconds. None waits indefinitely.
            user_agent: Value for the User-Agent header.
        """
        self.timeout = timeout
        self.user_agent = user_agent

    def fetch(self, url: str, dest: Union[str, Path]) -> Path:
        """
        Download a URL to a local file.

        A partially written file is removed if the transfer fails.

        Args:
            url: Remote location
            dest: Local file to create or overwrite

        Returns:
            Path to the downloaded file
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        print(f"Downloading {url} => {dest}")

        request = Request(url)
        request.add_header("User-Agent", self.user_agent)

        try:
            with urlopen(request, timeout=self.timeout) as response:
                with open(dest, "wb") as f:
                    shutil.copyfileobj(response, f, CHUNK_SIZE)
        except HTTPError as e:
            dest.unlink(missing_ok=True)
            raise ToolInvocationError(
                f"Failed to download {url}: HTTP {e.code}", step="download"
            ) from e
        except (URLError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise ToolInvocationError(
                f"Failed to download {url}: {e}", step="download"
            ) from e

        return dest


def sha256_file(path: Union[str, Path]) -> str:
    """
    Compute the SHA-256 of a file without loading it into memory.

    Args:
        path: File to hash

    Returns:
        Lowercase hex digest
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
