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
Generates the cloud-init NoCloud seed: user-data, meta-data and the cidata ISO.
"""
import shutil
from importlib import resources
from pathlib import Path
from typing import Dict, Optional

import yaml
from jinja2 import Environment

from ..errors import ConfigurationError
from ..MODELS.image_artifacts import CloudInitSeed
from ..MODELS.run_config import RunConfig
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.console import Console

USER_DATA = "user-data"
META_DATA = "meta-data"
TEMPLATE_SUFFIX = ".template"
VOLUME_ID = "cidata"

USER_DATA_TEMPLATE = """
user: {{ user | yaml_scalar }}
password: {{ password | yaml_scalar }}
chpasswd: { expire: False }
"""

META_DATA_TEMPLATE = """
local-hostname: {{ hostname | yaml_scalar }}
"""


class CloudInitSeedBuilder:
    """
    Writes the per-run cloud-init files and packs them into a cidata volume.
    """

    def __init__(self, config: RunConfig, runner: ProcessRunner, console: Optional[Console] = None):
        """
        Initializes the seed builder.

        :param config: The run configuration.
        :param runner: Executes genisoimage.
        :param console: Status output.
        """
        self.config = config
        self.runner = runner
        self.console = console or Console()
        env = Environment(keep_trailing_newline=True)
        env.filters["yaml_scalar"] = yaml_scalar
        self.user_template = env.from_string(USER_DATA_TEMPLATE)
        self.meta_template = env.from_string(META_DATA_TEMPLATE)

    def build(self) -> CloudInitSeed:
        """
        Generates the seed files and the ISO.

        :return: Paths of the generated files and ISO.
        :raises ToolInvocationError: If the ISO cannot be built.
        """
        seed_dir = self.config.cloud_init_dir
        seed_dir.mkdir(parents=True, exist_ok=True)

        iso_path = self.config.seed_iso_path
        if iso_path.exists():
            iso_path.unlink()

        user_data = self._from_template(seed_dir, USER_DATA)
        meta_data = self._from_template(seed_dir, META_DATA)

        with open(user_data, "a") as f:
            f.write(self.user_template.render(
                user=self.config.guest_user,
                password=self.config.guest_password,
            ))
        with open(meta_data, "a") as f:
            f.write(self.meta_template.render(hostname=self.config.guest_hostname))
        check_cloud_config(user_data, {"user": self.config.guest_user, "password": self.config.guest_password})
        check_cloud_config(meta_data, {"local-hostname": self.config.guest_hostname})
        self.console.ok("Generate configuration for cloud-init...")

        iso_path.parent.mkdir(parents=True, exist_ok=True)
        built = self.runner.run_step(
            "cloud_init_iso",
            ["genisoimage", "-output", str(iso_path), "-volid", VOLUME_ID,
             "-joliet", "-rock", USER_DATA, META_DATA],
            self.config.step_policy.severity("cloud_init_iso"),
            "Failed to generate the cloud-init ISO image",
            cwd=str(seed_dir),
        )
        if built:
            self.console.ok("Generate the cloud-init ISO image...")

        return CloudInitSeed(user_data=user_data, meta_data=meta_data, iso_path=iso_path)

    def _from_template(self, seed_dir: Path, name: str) -> Path:
        """
        Copies ``<name>.template`` to ``<name>``, leaving the template untouched.

        A template in the seed directory wins over the one shipped with the package.
        """
        dest = seed_dir / name
        local = seed_dir / f"{name}{TEMPLATE_SUFFIX}"
        if local.is_file():
            shutil.copyfile(local, dest)
        else:
            dest.write_text(packaged_template(name))
        return dest


def yaml_scalar(value: str) -> str:
    """
    Renders a string as a YAML scalar, quoting it only when a plain scalar
    would be read back as something else (e.g. `0755`, `yes`, `[x]`).
    """
    text = yaml.safe_dump(value, default_flow_style=True, width=float("inf")).rstrip("\n")
    if text.endswith("\n..."):
        text = text[:-len("\n...")]
    return text


def check_cloud_config(path: Path, expected: Optional[Dict[str, str]] = None):
    """
    Makes sure a generated seed file is a YAML mapping cloud-init can read,
    and that the appended values read back unchanged.

    :raises ConfigurationError: If the file is not a mapping or a value changed type or content.
    """
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Generated {path.name} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Generated {path.name} is not a YAML mapping")
    for key, value in (expected or {}).items():
        if data.get(key) != value:
            raise ConfigurationError(
                f"Generated {path.name} does not read {key} back as the configured value"
            )


def packaged_template(name: str) -> str:
    """
    Reads a cloud-init template shipped with tdximage.

    :param name: ``user-data`` or ``meta-data``.
    """
    template = resources.files("tdximage").joinpath(f"DATA/cloud-init-data/{name}{TEMPLATE_SUFFIX}")
    return template.read_text()
