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
Parser for SHA256SUMS checksum manifests, as written by sha256sum.
"""
import re
from ..MODELS.image_artifacts import ChecksumManifest, ManifestEntry

# <64 hex digits><space><space or '*'><file name>
LINE_PATTERN = re.compile(r'^([0-9a-fA-F]{64}) ([ *])(.+)$')


class ManifestParser:
    """
    Parser for checksum manifests.
    """
    @staticmethod
    def parse(manifest_path: str) -> ChecksumManifest:
        """
        Parses a manifest from a path.

        Args:
            manifest_path (str): Path to the SHA256SUMS file.

        Returns:
            ChecksumManifest: Entries in file order.
        """
        with open(manifest_path, 'r') as f:
            content = f.read()
        return ManifestParser.parse_from_string(content)

    @staticmethod
    def parse_from_string(content: str) -> ChecksumManifest:
        """
        Parses a manifest from a string.
        Blank lines, comments and lines that are not checksum entries are skipped.
        """
        entries = []
        for line in content.splitlines():
            line = line.rstrip('\r\n')
            if not line.strip() or line.lstrip().startswith('#'):
                continue

            match = LINE_PATTERN.match(line.strip())
            if not match:
                continue

            digest, marker, filename = match.groups()
            entries.append(ManifestEntry(
                sha256=digest.lower(),
                filename=filename.strip(),
                binary=(marker == '*'),
            ))

        return ChecksumManifest(entries=entries)
