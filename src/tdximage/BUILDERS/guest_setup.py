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
Out-of-VM customization of the guest image with virt-customize.
"""
import os
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..MODELS.run_config import RunConfig, Severity
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.console import Console

GUEST_SCRIPT_DIR = "/tmp/"
GUEST_REPO_DIR = "/srv/"
HOST_ENVIRONMENT_FILE = "/etc/environment"


class GuestCustomizer:
    """
    Builds and runs virt-customize invocations against one disk image.
    """
    def __init__(self, image_path: Path, runner: ProcessRunner):
        """
        :param image_path: The disk image to customize.
        :param runner: Executes virt-customize.
        """
        self.image_path = image_path
        self.runner = runner

    def command(self,
                copy_in: Sequence[Tuple[str, str]] = (),
                run_commands: Sequence[str] = ()) -> List[str]:
        """
        Builds a single virt-customize command line.

        :param copy_in: (host path, guest directory) pairs.
        :param run_commands: Shell commands to run inside the image, in order.
        """
        command = ["virt-customize", "-a", str(self.image_path)]
        for src, dest in copy_in:
            command += ["--copy-in", f"{src}:{dest}"]
        for cmd in run_commands:
            command += ["--run-command", cmd]
        return command

    def copy_in(self, step: str, src: str, dest: str, severity: Severity,
                failure_message: Optional[str] = None) -> bool:
        return self.runner.run_step(step, self.command(copy_in=[(src, dest)]), severity, failure_message)

    def run_commands(self, step: str, commands: Sequence[str], severity: Severity,
                     failure_message: Optional[str] = None) -> bool:
        return self.runner.run_step(step, self.command(run_commands=commands), severity, failure_message)

    def copy_host_environment(self, config: RunConfig, console: Console) -> bool:
        """
        Copies the host's /etc/environment into the guest so http_proxy settings carry over.
        """
        ok = self.copy_in(
            "host_environment",
            HOST_ENVIRONMENT_FILE,
            "/etc",
            config.step_policy.severity("host_environment"),
            "Failed to Copy host's environment file to guest for http_proxy",
        )
        if ok:
            console.ok("Copy host's environment file to guest for http_proxy")
        return ok


class GuestSetupInjector:
    """
    Copies the guest setup scripts into the image and runs the primary one there.

    Everything the setup script does inside the guest collapses into the exit
    status of one virt-customize call.
    """
    def __init__(self, config: RunConfig, customizer: GuestCustomizer, console: Optional[Console] = None):
        self.config = config
        self.customizer = customizer
        self.console = console or Console()

    def inject(self):
        """
        Runs the guest setup.

        :raises ConfigurationError: If the local package repository is not a directory.
        :raises ToolInvocationError: If any virt-customize call fails.
        """
        policy = self.config.step_policy
        failure = "Failed to setup guest image"
        setup_severity = policy.severity("guest_setup")

        if self.config.guest_repo is not None:
            repo = self.config.guest_repo
            if not repo.is_dir():
                raise ConfigurationError(f"Guest repo {repo} is not a directory")
            self.customizer.copy_in(
                "guest_repo", str(repo), GUEST_REPO_DIR, policy.severity("guest_repo"),
                f"Failed to copy guest repo {repo} into the guest image",
            )
            self.console.ok(f"Copy guest repo {repo} => {GUEST_REPO_DIR}")

        setup_script = self.config.setup_script_path
        self.customizer.copy_in("guest_setup", str(setup_script), GUEST_SCRIPT_DIR, setup_severity, failure)
        self.customizer.copy_in(
            "guest_setup", str(self.config.tdx_setup_script_path), GUEST_SCRIPT_DIR, setup_severity, failure
        )
        guest_script = os.path.join(GUEST_SCRIPT_DIR, setup_script.name)
        if self.customizer.run_commands("guest_setup", [guest_script], setup_severity, failure):
            self.console.ok("Setup guest image...")
