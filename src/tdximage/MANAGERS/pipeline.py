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
End-to-end orchestration of a guest image build.
"""
import time
from pathlib import Path
from typing import Callable, Optional

from ..BUILDERS.guest_setup import GuestCustomizer, GuestSetupInjector
from ..BUILDERS.image_materializer import ImageMaterializer
from ..CONVERTERS.cloud_init import CloudInitSeedBuilder
from ..errors import ConfigurationError, ImageBuildError
from ..MODELS.run_config import RunConfig
from ..REGISTRY.http_fetcher import HttpFetcher
from ..REGISTRY.image_acquirer import ImageAcquirer
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.console import Console
from .finalizer import Finalizer
from .host_checks import HostChecks
from .provisioning_vm import ProvisioningVM


class ImagePipeline:
    """
    Runs every build step in order against one immutable configuration.

    Any fatal error runs the cleanup routine and is re-raised; the working
    image is only moved to the output path after all steps succeed.
    """
    def __init__(self,
                 config: RunConfig,
                 runner: Optional[ProcessRunner] = None,
                 fetcher: Optional[HttpFetcher] = None,
                 console: Optional[Console] = None,
                 host_checks: Optional[HostChecks] = None,
                 install_deps: bool = False,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initializes the pipeline.

        :param config: The run configuration.
        :param runner: Executes external tools.
        :param fetcher: Downloads the manifest and the base image.
        :param console: Status output.
        :param host_checks: Preflight checks, built from the runner if omitted.
        :param install_deps: Install the host packages with apt before checking tools.
        :param sleep: Used for the VM settle period.
        """
        self.config = config
        self.console = console or Console()
        self.runner = runner or ProcessRunner(self.console)
        self.fetcher = fetcher
        self.host_checks = host_checks or HostChecks(self.runner, self.console)
        self.install_deps = install_deps
        self.sleep = sleep
        self.finalizer = Finalizer(config, self.console)

    def run(self) -> Path:
        """
        Builds the guest image.

        :return: Path of the finished image.
        :raises ImageBuildError: On any fatal error, after cleanup.
        """
        try:
            self._check_mode()
            self._preflight()

            base = ImageAcquirer(self.config, self.fetcher, console=self.console).acquire()
            working = ImageMaterializer(self.config, self.runner, self.console).materialize(base)

            customizer = GuestCustomizer(working.path, self.runner)
            customizer.copy_host_environment(self.config, self.console)

            seed = CloudInitSeedBuilder(self.config, self.runner, self.console).build()
            ProvisioningVM(self.config, self.runner, self.console, self.sleep).provision(working, seed)

            GuestSetupInjector(self.config, customizer, self.console).inject()
        except ImageBuildError as e:
            self.console.error(str(e))
            self.finalizer.cleanup()
            raise
        except KeyboardInterrupt:
            self.finalizer.cleanup()
            raise

        self.finalizer.cleanup()
        try:
            final = self.finalizer.promote(working)
        except ImageBuildError as e:
            self.console.error(str(e))
            raise
        self.console.ok(f"TDX guest image : {final}")
        return final

    def _check_mode(self):
        if not self.config.use_official_image:
            raise ConfigurationError(
                f"Only support download the image from {self.config.image_source}"
            )

    def _preflight(self):
        if self.install_deps:
            self.host_checks.install_tools(self.config.step_policy.severity("install_deps"))
        self.host_checks.require_tools()
        self.host_checks.check_permissions()
