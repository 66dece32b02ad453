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
Command Line Interface for tdximage.
"""
import os
from pathlib import Path

import click

from ..errors import ConfigurationError, ImageBuildError
from ..MODELS.run_config import DEFAULT_OUTPUT_IMAGE, DEFAULT_SIZE_GB, RunConfig
from ..MANAGERS.pipeline import ImagePipeline
from ..UTILS.console import Console
from ..UTILS.environment import DEFAULT_ENV_FILE, load_environment

INVALID_USAGE_EXIT_CODE = 1


class CreateImageCommand(click.Command):
    """
    Reports usage errors with exit status 1 instead of click's default 2.
    """
    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = INVALID_USAGE_EXIT_CODE
            raise


@click.command(cls=CreateImageCommand, context_settings={'help_option_names': ['-h', '--help']})
@click.option('--output', '-o', default=DEFAULT_OUTPUT_IMAGE, show_default=True,
              help='Output file name, must end in .qcow2. Built in /tmp, then moved to the current directory.')
@click.option('--size', '-s', type=int, default=DEFAULT_SIZE_GB, show_default=True,
              help='Size in GB to add to the guest image')
@click.option('--hostname', '-n', default=None, help='Guest host name, default is "tdx-guest"')
@click.option('--user', '-u', default=None, help='Guest user name, default is "tdx"')
@click.option('--password', '-p', default=None, help='Guest password, default is "123456"')
@click.option('--repo', '-r', type=click.Path(path_type=Path), default=None,
              help='Directory including guest packages, generated by build-repo.sh')
@click.option('--force', '-f', is_flag=True, help='Force to recreate the output image')
@click.option('--custom', '-c', is_flag=True,
              help='Create customize image (not from Ubuntu official cloud image)')
@click.option('--tools-dir', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Directory for SHA256SUMS, the cloud image and cloud-init data [env: TDX_TOOLS_DIR]')
@click.option('--setup-script', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Guest setup script run inside the image (default: <tools-dir>/setup.sh)')
@click.option('--tdx-setup-script', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Script the setup script depends on (default: <tools-dir>/../../setup-tdx-guest.sh)')
@click.option('--install-deps', is_flag=True, help='Install qemu-utils, libguestfs-tools, virtinst and genisoimage with apt')
@click.option('--env-file', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='dotenv file with OFFICIAL_UBUNTU_IMAGE, CLOUD_IMG, GUEST_* settings (default: <tools-dir>/.env)')
@click.pass_context
def cli(ctx, output, size, hostname, user, password, repo, force, custom,
        tools_dir, setup_script, tdx_setup_script, install_deps, env_file):
    """
    Create an Ubuntu EFI cloud TDX guest image.

    Runs on any Linux host with qemu-img, virt-customize, virt-install and
    genisoimage installed; a TDX capable host is not required.
    """
    console = Console()

    tools_dir = tools_dir or Path(os.environ.get('TDX_TOOLS_DIR') or Path.cwd())
    environ = load_environment(env_file or tools_dir / DEFAULT_ENV_FILE)

    try:
        config = RunConfig.from_environment(
            environ,
            output_image=output,
            size_gb=size,
            guest_hostname=hostname,
            guest_user=user,
            guest_password=password,
            guest_repo=repo,
            force_recreate=force,
            use_official_image=not custom,
            tools_dir=tools_dir,
            work_dir=Path.cwd(),
            setup_script=setup_script,
            tdx_setup_script=tdx_setup_script,
        )
    except ConfigurationError as e:
        console.error(str(e))
        ctx.exit(1)

    pipeline_factory = (ctx.obj or {}).get("pipeline_factory", ImagePipeline)
    pipeline = pipeline_factory(config, console=console, install_deps=install_deps)
    try:
        pipeline.run()
    except ImageBuildError:
        ctx.exit(1)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
