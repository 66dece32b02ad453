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
Cleanup of transient files and promotion of the finished image.
"""
import os
import shutil
import stat
from pathlib import Path
from typing import Optional

from ..errors import ToolInvocationError
from ..MODELS.image_artifacts import WorkingImage
from ..MODELS.run_config import RunConfig
from ..UTILS.console import Console

# chmod a+rw
WORLD_READ_WRITE = (
    stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH
)


class Finalizer:
    """
    Ends a run: removes the manifest, and on success moves the image into place.
    """
    def __init__(self, config: RunConfig, console: Optional[Console] = None):
        self.config = config
        self.console = console or Console()

    def cleanup(self):
        """
        Removes the checksum manifest. Runs on both success and failure paths.
        """
        manifest = self.config.manifest_path
        if manifest.is_file():
            manifest.unlink()
        self.console.ok("Cleanup!")

    def promote(self, working: WorkingImage) -> Path:
        """
        Moves the working image to the caller's directory and opens its permissions.

        :param working: The fully provisioned working image.
        :return: The final image path.
        """
        dest = self.config.final_image_path
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(working.path), str(dest))
            mode = stat.S_IMODE(os.stat(dest).st_mode)
            os.chmod(dest, mode | WORLD_READ_WRITE)
        except OSError as e:
            raise ToolInvocationError(f"Failed to move {working.path} to {dest}: {e}", step="promote") from e
        return dest
