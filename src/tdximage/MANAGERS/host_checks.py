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
Preflight checks on the build host: required tools and privileges.
"""
import os
import time
import warnings
from typing import Callable, List, Optional

from ..errors import ConfigurationError, PermissionWarning
from ..MODELS.run_config import Severity
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.console import Console

REQUIRED_TOOLS = ["qemu-img", "virt-customize", "virt-install", "genisoimage"]
HOST_PACKAGES = ["qemu-utils", "libguestfs-tools", "virtinst", "genisoimage"]
LIBVIRT_PERMISSIONS_DOC = "https://libvirt.org/drvqemu.html#posix-users-groups"
PERMISSION_GRACE_SECONDS = 5


class HostChecks:
    """
    Verifies the host can run a build before anything is downloaded.
    """
    def __init__(self,
                 runner: ProcessRunner,
                 console: Optional[Console] = None,
                 geteuid: Callable[[], int] = os.geteuid,
                 sleep: Callable[[float], None] = time.sleep):
        self.runner = runner
        self.console = console or Console()
        self.geteuid = geteuid
        self.sleep = sleep

    def install_tools(self, severity: Severity = Severity.WARNING) -> bool:
        """
        Installs the host packages that provide the required tools with apt.
        """
        self.console.info("Installing required tools ...")
        return self.runner.run_step(
            "install_deps",
            ["apt", "install", "--yes"] + HOST_PACKAGES,
            severity,
            "Failed to install required tools",
        )

    def require_tools(self, tools: List[str] = REQUIRED_TOOLS):
        """
        :raises ConfigurationError: For the first tool not found on PATH.
        """
        for tool in tools:
            if not self.runner.which(tool):
                raise ConfigurationError(f"{tool} is not installed")

    def check_permissions(self) -> bool:
        """
        Warns when not running as root.

        libvirt may still allow the build through group membership, so this
        only warns and pauses.

        :return: True if running as root.
        """
        if self.geteuid() == 0:
            return True

        self.console.warn(
            "Current user is not root, please use root permission via \"sudo\" or make sure current user has "
            "correct permission by configuring /etc/libvirt/qemu.conf"
        )
        self.console.warn(f"Please refer {LIBVIRT_PERMISSIONS_DOC}")
        warnings.warn("running without root privileges", PermissionWarning, stacklevel=2)
        self.sleep(PERMISSION_GRACE_SECONDS)
        return False
