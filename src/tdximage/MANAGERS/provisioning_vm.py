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
Lifecycle of the ephemeral VM that lets cloud-init apply the seed to the image.
"""
import time
from typing import Callable, List, Optional

from ..MODELS.image_artifacts import CloudInitSeed, WorkingImage
from ..MODELS.run_config import RunConfig
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.console import Console


class ProvisioningVM:
    """
    Boots the working image once with the seed ISO attached, then discards the VM.

    The boot is not polled for readiness: virt-install waits a fixed number
    of minutes, the VM gets a short grace period, and teardown follows
    whether or not the guest finished.
    """
    def __init__(self,
                 config: RunConfig,
                 runner: ProcessRunner,
                 console: Optional[Console] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initializes the provisioning VM manager.

        :param config: The run configuration.
        :param runner: Executes virt-install and virsh.
        :param console: Status output.
        :param sleep: Used for the settle period.
        """
        self.config = config
        self.runner = runner
        self.console = console or Console()
        self.sleep = sleep

    def install_command(self, working: WorkingImage, seed: CloudInitSeed) -> List[str]:
        """
        Builds the virt-install command line for an imported, headless VM.
        """
        return [
            "virt-install",
            "--memory", str(self.config.vm_memory_mb),
            "--vcpus", str(self.config.vm_vcpus),
            "--name", self.config.vm_name,
            "--disk", str(working.path),
            "--disk", f"{seed.iso_path},device=cdrom",
            "--os-variant", self.config.os_variant,
            "--virt-type", "kvm",
            "--graphics", "none",
            "--import",
            f"--wait={self.config.boot_wait_minutes}",
        ]

    def provision(self, working: WorkingImage, seed: CloudInitSeed):
        """
        Runs cloud-init in the guest. Teardown always happens afterwards.

        :raises ToolInvocationError: If virt-install fails.
        """
        try:
            booted = self.runner.run_step(
                "cloud_init_vm",
                self.install_command(working, seed),
                self.config.step_policy.severity("cloud_init_vm"),
                "Failed to configure cloud init",
            )
            if booted:
                self.console.ok("Complete cloud-init...")
                self.sleep(self.config.settle_seconds)
        finally:
            self.teardown()

    def teardown(self):
        """
        Force-stops and undefines the VM. A VM that is already gone is fine.
        """
        severity = self.config.step_policy.severity("teardown")
        self.runner.run_step("teardown", ["virsh", "destroy", self.config.vm_name], severity)
        self.runner.run_step("teardown", ["virsh", "undefine", self.config.vm_name], severity)
