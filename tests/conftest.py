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
Shared fixtures: a recording process runner and an in-memory HTTP fetcher.
"""
import hashlib
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from tdximage.MODELS.run_config import RunConfig
from tdximage.RUNNERS.process_runner import ProcessResult, ProcessRunner
from tdximage.UTILS.console import Console

IMAGE_SOURCE = "https://images.example.com/noble/current/"
CLOUD_IMAGE = "noble-server-cloudimg-amd64-disk1.img"
IMAGE_BYTES = b"ubuntu cloud image bytes"


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def manifest_for(entries: Dict[str, bytes]) -> bytes:
    lines = [f"{sha256(data)} *{name}" for name, data in entries.items()]
    return ("\n".join(lines) + "\n").encode()


class FakeRunner(ProcessRunner):
    """
    Records commands instead of running them.

    ``fail_on`` maps a substring of the joined command line to the exit
    status that command should return.
    """
    def __init__(self, fail_on: Optional[Dict[str, int]] = None, missing_tools: Optional[List[str]] = None):
        super().__init__(Console(color=False))
        self.fail_on = fail_on or {}
        self.missing_tools = missing_tools or []
        self.commands: List[List[str]] = []
        self.cwds: List[Optional[str]] = []

    def run(self, command, cwd=None):
        self.commands.append(list(command))
        self.cwds.append(cwd)
        line = " ".join(command)
        returncode = 0
        for needle, code in self.fail_on.items():
            if needle in line:
                returncode = code
                break
        if returncode == 0 and command[0] == "genisoimage":
            output = Path(command[command.index("-output") + 1])
            output.write_bytes(b"iso")
        result = ProcessResult(command=list(command), returncode=returncode)
        self.history.append(result)
        return result

    def which(self, tool):
        if tool in self.missing_tools:
            return None
        return f"/usr/bin/{tool}"

    def tools_called(self) -> List[str]:
        return [c[0] for c in self.commands]


class FakeFetcher:
    """
    Serves URLs from memory. A list value is served one item per request.
    """
    def __init__(self, responses: Dict[str, object]):
        self.responses = responses
        self.requests: List[str] = []

    def fetch(self, url, dest):
        self.requests.append(url)
        payload = self.responses[url]
        if isinstance(payload, list):
            payload = payload.pop(0) if len(payload) > 1 else payload[0]
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(payload)
        return dest

    def image_requests(self) -> List[str]:
        return [url for url in self.requests if not url.endswith("SHA256SUMS")]


@pytest.fixture
def tools_dir(tmp_path):
    path = tmp_path / "guest-tools" / "image"
    path.mkdir(parents=True)
    (path / "setup.sh").write_text("#!/bin/bash\n")
    (tmp_path / "setup-tdx-guest.sh").write_text("#!/bin/bash\n")
    return path


@pytest.fixture
def config(tmp_path, tools_dir):
    work_dir = tmp_path / "work"
    temp_dir = tmp_path / "tmp"
    work_dir.mkdir()
    temp_dir.mkdir()
    return RunConfig(
        output_image="out.qcow2",
        image_source=IMAGE_SOURCE,
        cloud_image=CLOUD_IMAGE,
        tools_dir=tools_dir,
        work_dir=work_dir,
        temp_dir=temp_dir,
        settle_seconds=0,
    )


@pytest.fixture
def fetcher():
    return FakeFetcher({
        IMAGE_SOURCE + "SHA256SUMS": manifest_for({CLOUD_IMAGE: IMAGE_BYTES}),
        IMAGE_SOURCE + CLOUD_IMAGE: IMAGE_BYTES,
    })


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def console():
    return Console(color=False)
