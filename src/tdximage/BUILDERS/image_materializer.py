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
Materializes the verified base image into a resized working copy.
"""
import shutil
from typing import Optional

from ..errors import ToolInvocationError
from ..MODELS.image_artifacts import BaseImage, WorkingImage
from ..MODELS.run_config import RunConfig, Severity
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.console import Console
from .guest_setup import GuestCustomizer

# Run inside the image after the container has grown
GROW_ROOT_COMMANDS = [
    "growpart /dev/sda 1",
    "resize2fs /dev/sda1",
    "systemctl mask pollinate.service",
]


class ImageMaterializer:
    """
    Copies the base image to the working location and grows it.
    """
    def __init__(self, config: RunConfig, runner: ProcessRunner, console: Optional[Console] = None):
        """
        Initializes the materializer.

        :param config: The run configuration.
        :param runner: Executes qemu-img and virt-customize.
        :param console: Status output.
        """
        self.config = config
        self.runner = runner
        self.console = console or Console()

    def materialize(self, base: BaseImage) -> WorkingImage:
        """
        Produces the working image.

        :param base: The verified base image. It is only read.
        :return: The working image, resized unless resizing failed softly.
        """
        working = self.copy(base)
        working.resized = self.resize(working)
        return working

    def copy(self, base: BaseImage) -> WorkingImage:
        """
        Byte-for-byte copy of the base image.

        :raises ToolInvocationError: If the copy fails and the copy step is fatal.
        """
        dest = self.config.working_image_path
        severity = self.config.step_policy.severity("copy_image")
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(base.path, dest)
        except OSError as e:
            message = f"Failed to copy {base.path.name} to {dest.parent}"
            if severity == Severity.FATAL:
                raise ToolInvocationError(message, step="copy_image") from e
            self.console.warn(f"{message}: {e}")
        else:
            self.console.ok(f"Copy the {base.path.name} => {dest}")
        return WorkingImage(path=dest, size_gb=self.config.size_gb)

    def resize(self, working: WorkingImage) -> bool:
        """
        Grows the disk container, then the partition and filesystem inside it.

        :return: True if every resize command succeeded.
        """
        severity = self.config.step_policy.severity("resize")
        failure = f"Failed to resize guest image to {working.size_gb}G"

        grown = self.runner.run_step(
            "resize",
            ["qemu-img", "resize", str(working.path), f"+{working.size_gb}G"],
            severity,
            failure,
        )
        customizer = GuestCustomizer(working.path, self.runner)
        filled = customizer.run_commands("resize", GROW_ROOT_COMMANDS, severity, failure)

        if grown and filled:
            self.console.ok(f"Resize the guest image to {working.size_gb}G")
            return True
        return False
