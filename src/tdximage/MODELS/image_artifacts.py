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
Models for the artifacts that flow through an image build.
"""
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ManifestEntry(BaseModel):
    """
    A single line of a checksum manifest.
    """
    model_config = ConfigDict(frozen=True)

    sha256: str
    filename: str
    binary: bool = False


class ChecksumManifest(BaseModel):
    """
    Ordered checksum entries, as published next to the cloud images.
    """
    entries: List[ManifestEntry] = []

    def lookup(self, filename: str) -> Optional[ManifestEntry]:
        """
        Finds the entry for a file name.

        :param filename: The exact file name to look for.
        :return: The first matching entry, or None.
        """
        for entry in self.entries:
            if entry.filename == filename:
                return entry
        return None

    def __contains__(self, filename: str) -> bool:
        return self.lookup(filename) is not None

    def __len__(self) -> int:
        return len(self.entries)


class BaseImage(BaseModel):
    """
    A downloaded cloud image whose checksum matched the manifest.
    """
    model_config = ConfigDict(frozen=True)

    path: Path
    sha256: str


class WorkingImage(BaseModel):
    """
    The mutable copy of the base image that gets provisioned.
    """
    path: Path
    size_gb: int
    resized: bool = False


class CloudInitSeed(BaseModel):
    """
    Generated cloud-init files and the NoCloud ISO built from them.
    """
    model_config = ConfigDict(frozen=True)

    user_data: Path
    meta_data: Path
    iso_path: Path
