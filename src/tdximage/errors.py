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
Error types raised while building a guest image.

Every fatal condition derives from ImageBuildError so the pipeline can run
its cleanup routine before the CLI turns it into exit status 1.
"""
from typing import List, Optional


class ImageBuildError(Exception):
    """Base class for all fatal image build errors."""


class ConfigurationError(ImageBuildError, ValueError):
    """Invalid or unsupported input, or a host that cannot run the build."""


class IntegrityError(ImageBuildError):
    """The base image could not be verified against the checksum manifest."""


class ChecksumMismatch(IntegrityError):
    """
    A single verification attempt failed.

    Raised inside the verify loop to trigger a re-download; only surfaces
    as IntegrityError once all attempts are used up.
    """

    def __init__(self, filename: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {filename}: expected {expected}, got {actual}"
        )
        self.filename = filename
        self.expected = expected
        self.actual = actual


class ToolInvocationError(ImageBuildError, RuntimeError):
    """An external tool or file operation failed on a fatal step."""

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.step = step
        self.command = command or []
        self.returncode = returncode


class PermissionWarning(UserWarning):
    """The build is running without root privileges."""
