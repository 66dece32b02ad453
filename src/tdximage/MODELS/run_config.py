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
Run configuration for a single guest image build.

The configuration is resolved once from the command line and the process
environment and then handed to every pipeline component. It is immutable.
"""
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigurationError

DEFAULT_IMAGE_SOURCE = "https://cloud-images.ubuntu.com/buildd/daily/noble/current/"
DEFAULT_CLOUD_IMAGE = "noble-server-cloudimg-amd64-disk1.img"
DEFAULT_OUTPUT_IMAGE = "tdx-guest-ubuntu-24.04.qcow2"
DEFAULT_GUEST_USER = "tdx"
DEFAULT_GUEST_PASSWORD = "123456"
DEFAULT_GUEST_HOSTNAME = "tdx-guest"
DEFAULT_SIZE_GB = 50
IMAGE_SUFFIX = ".qcow2"

MANIFEST_NAME = "SHA256SUMS"
SEED_ISO_NAME = "ciiso.iso"
CLOUD_INIT_DIR = "cloud-init-data"

# Environment variable -> RunConfig field
ENVIRONMENT_FIELDS = {
    "OFFICIAL_UBUNTU_IMAGE": "image_source",
    "CLOUD_IMG": "cloud_image",
    "GUEST_USER": "guest_user",
    "GUEST_PASSWORD": "guest_password",
    "GUEST_HOSTNAME": "guest_hostname",
    "TDX_TOOLS_DIR": "tools_dir",
}


class Severity(str, Enum):
    """
    How a failed step affects the run.
    """
    FATAL = "fatal"
    WARNING = "warning"
    IGNORE = "ignore"


class StepPolicy(BaseModel):
    """
    Severity of each external step.

    A fatal step aborts the build, a warning step is reported and skipped,
    an ignored step is silent.
    """
    model_config = ConfigDict(frozen=True)

    install_deps: Severity = Severity.WARNING
    copy_image: Severity = Severity.FATAL
    resize: Severity = Severity.WARNING
    host_environment: Severity = Severity.WARNING
    cloud_init_iso: Severity = Severity.FATAL
    cloud_init_vm: Severity = Severity.FATAL
    teardown: Severity = Severity.IGNORE
    guest_repo: Severity = Severity.FATAL
    guest_setup: Severity = Severity.FATAL

    def severity(self, step: str) -> Severity:
        """
        Looks up the severity of a step.

        :param step: The step name, e.g. ``resize``.
        :return: The configured severity; unknown steps are fatal.
        """
        if step not in type(self).model_fields:
            return Severity.FATAL
        return getattr(self, step)


class RunConfig(BaseModel):
    """
    Everything a build needs to know, resolved up front.
    """
    model_config = ConfigDict(frozen=True)

    # Output
    output_image: str = DEFAULT_OUTPUT_IMAGE
    size_gb: int = Field(default=DEFAULT_SIZE_GB, gt=0)

    # Guest identity
    guest_user: str = DEFAULT_GUEST_USER
    guest_password: str = DEFAULT_GUEST_PASSWORD
    guest_hostname: str = DEFAULT_GUEST_HOSTNAME
    guest_repo: Optional[Path] = None

    # Modes
    force_recreate: bool = False
    use_official_image: bool = True

    # Base image source
    image_source: str = DEFAULT_IMAGE_SOURCE
    cloud_image: str = DEFAULT_CLOUD_IMAGE
    max_download_attempts: int = Field(default=3, ge=1)
    download_timeout: Optional[float] = None

    # Locations
    tools_dir: Path = Field(default_factory=Path.cwd)
    work_dir: Path = Field(default_factory=Path.cwd)
    temp_dir: Path = Path("/tmp")
    setup_script: Optional[Path] = None
    tdx_setup_script: Optional[Path] = None

    # Ephemeral provisioning VM
    vm_name: str = "tdx-config-cloud-init"
    vm_memory_mb: int = 4096
    vm_vcpus: int = 4
    os_variant: str = "ubuntu24.04"
    boot_wait_minutes: int = 3
    settle_seconds: float = 1.0

    step_policy: StepPolicy = Field(default_factory=StepPolicy)

    @field_validator("output_image")
    @classmethod
    def _check_suffix(cls, value: str) -> str:
        if not value.endswith(IMAGE_SUFFIX):
            raise ValueError(
                f"The output file should be qcow2 format with the suffix {IMAGE_SUFFIX}."
            )
        return value

    @field_validator("guest_repo")
    @classmethod
    def _check_repo(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and not value.is_dir():
            raise ValueError(f"Guest repo {value} is not a directory")
        return value

    @model_validator(mode="after")
    def _check_collision(self) -> "RunConfig":
        if Path(self.output_image).name == self.cloud_image:
            raise ValueError("Please specify a different name for guest image via -o")
        return self

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "RunConfig":
        """
        Builds a configuration from environment variables and explicit values.

        Explicit values win over the environment; ``None`` values are treated
        as "not given".

        :param environ: Variables to read, see ENVIRONMENT_FIELDS.
        :param overrides: Field values, typically from the command line.
        :return: A validated configuration.
        :raises ConfigurationError: If the values do not validate.
        """
        values: Dict[str, Any] = {}
        for var, field in ENVIRONMENT_FIELDS.items():
            if environ and environ.get(var):
                values[field] = environ[var]
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            messages = "; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors())
            raise ConfigurationError(messages) from e

    @property
    def image_name(self) -> str:
        return Path(self.output_image).name

    @property
    def manifest_path(self) -> Path:
        return self.tools_dir / MANIFEST_NAME

    @property
    def base_image_path(self) -> Path:
        return self.tools_dir / self.cloud_image

    @property
    def working_image_path(self) -> Path:
        return self.temp_dir / self.image_name

    @property
    def seed_iso_path(self) -> Path:
        return self.temp_dir / SEED_ISO_NAME

    @property
    def cloud_init_dir(self) -> Path:
        return self.tools_dir / CLOUD_INIT_DIR

    @property
    def final_image_path(self) -> Path:
        return self.work_dir / self.image_name

    @property
    def setup_script_path(self) -> Path:
        return self.setup_script or self.tools_dir / "setup.sh"

    @property
    def tdx_setup_script_path(self) -> Path:
        return self.tdx_setup_script or self.tools_dir.parent.parent / "setup-tdx-guest.sh"

    def source_url(self, filename: str) -> str:
        """Joins a file name onto the image source URL."""
        return f"{self.image_source.rstrip('/')}/{filename}"
