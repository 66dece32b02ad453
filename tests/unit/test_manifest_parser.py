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
Unit tests for the SHA256SUMS parser.
"""
from tdximage.PARSERS.manifest_parser import ManifestParser

DIGEST_A = "a" * 64
DIGEST_B = "B" * 64


def test_parse_from_string():
    content = f"""
{DIGEST_A} *noble-server-cloudimg-amd64.img
# comment
not a checksum line
{DIGEST_B}  noble-server-cloudimg-amd64-disk1.img
"""
    manifest = ManifestParser.parse_from_string(content)
    assert len(manifest) == 2

    first = manifest.entries[0]
    assert first.filename == "noble-server-cloudimg-amd64.img"
    assert first.binary is True

    entry = manifest.lookup("noble-server-cloudimg-amd64-disk1.img")
    assert entry.sha256 == "b" * 64
    assert entry.binary is False


def test_lookup_is_exact():
    content = f"{DIGEST_A} *noble-server-cloudimg-amd64-disk1.img.manifest\n"
    manifest = ManifestParser.parse_from_string(content)
    assert "noble-server-cloudimg-amd64-disk1.img" not in manifest
    assert manifest.lookup("noble-server-cloudimg-amd64-disk1.img") is None


def test_first_entry_wins():
    content = f"{DIGEST_A} *dup.img\n{DIGEST_B} *dup.img\n"
    manifest = ManifestParser.parse_from_string(content)
    assert manifest.lookup("dup.img").sha256 == DIGEST_A


def test_empty_and_crlf(tmp_path):
    path = tmp_path / "SHA256SUMS"
    path.write_bytes(f"\r\n{DIGEST_A} *x.img\r\n".encode())
    manifest = ManifestParser.parse(str(path))
    assert manifest.lookup("x.img").sha256 == DIGEST_A
    assert len(ManifestParser.parse_from_string("")) == 0
