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
Unit tests for copying and resizing the working image.
"""
import pytest

from conftest import FakeRunner
from tdximage.BUILDERS.image_materializer import GROW_ROOT_COMMANDS, ImageMaterializer
from tdximage.errors import ToolInvocationError
from tdximage.MODELS.image_artifacts import BaseImage
from tdximage.MODELS.run_config import StepPolicy


@pytest.fixture
def base(config):
    config.base_image_path.write_bytes(b"base image")
    return BaseImage(path=config.base_image_path, sha256="0" * 64)


def test_copy_and_resize(config, base, runner, console):
    working = ImageMaterializer(config, runner, console).materialize(base)

    assert working.path == config.working_image_path
    assert working.path.read_bytes() == b"base image"
    assert base.path.read_bytes() == b"base image"
    assert working.resized is True

    qemu, customize = runner.commands
    assert qemu == ["qemu-img", "resize", str(working.path), "+50G"]
    assert customize[:3] == ["virt-customize", "-a", str(working.path)]
    run_commands = [customize[i + 1] for i, arg in enumerate(customize) if arg == "--run-command"]
    assert run_commands == GROW_ROOT_COMMANDS


def test_copy_failure_is_fatal(config, runner, console, tmp_path):
    missing = BaseImage(path=tmp_path / "missing.img", sha256="0" * 64)
    with pytest.raises(ToolInvocationError) as excinfo:
        ImageMaterializer(config, runner, console).materialize(missing)
    assert excinfo.value.step == "copy_image"
    assert runner.commands == []
    assert not config.working_image_path.exists()


def test_resize_failure_is_a_warning(config, base, console, capsys):
    runner = FakeRunner(fail_on={"growpart": 1})
    working = ImageMaterializer(config, runner, console).materialize(base)
    assert working.resized is False
    assert working.path.exists()
    assert "WARN: Failed to resize guest image to 50G" in capsys.readouterr().out


def test_resize_failure_follows_step_policy(config, base, console):
    strict = config.model_copy(update={"step_policy": StepPolicy(resize="fatal")})
    runner = FakeRunner(fail_on={"growpart": 1})
    with pytest.raises(ToolInvocationError) as excinfo:
        ImageMaterializer(strict, runner, console).materialize(base)
    assert excinfo.value.step == "resize"
