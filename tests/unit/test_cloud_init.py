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
Unit tests for the cloud-init seed builder.
"""
import pytest
import yaml

from conftest import FakeRunner
from tdximage.CONVERTERS.cloud_init import CloudInitSeedBuilder, packaged_template, yaml_scalar
from tdximage.errors import ConfigurationError, ToolInvocationError


@pytest.fixture
def seed_config(config):
    return config.model_copy(update={
        "guest_user": "alice",
        "guest_password": "secret",
        "guest_hostname": "myhost",
    })


def test_generates_user_and_meta_data(seed_config, runner, console):
    seed = CloudInitSeedBuilder(seed_config, runner, console).build()

    user_data = seed.user_data.read_text()
    assert "user: alice" in user_data
    assert "password: secret" in user_data
    assert "chpasswd: { expire: False }" in user_data
    assert user_data.startswith(packaged_template("user-data"))

    meta_data = seed.meta_data.read_text()
    assert "local-hostname: myhost" in meta_data

    parsed = yaml.safe_load(user_data)
    assert parsed["chpasswd"] == {"expire": False}


def test_templates_are_not_modified(seed_config, runner, console):
    seed_dir = seed_config.cloud_init_dir
    seed_dir.mkdir(parents=True)
    (seed_dir / "user-data.template").write_text("#cloud-config\nssh_pwauth: true\n")
    (seed_dir / "meta-data.template").write_text("instance-id: test\n")

    builder = CloudInitSeedBuilder(seed_config, runner, console)
    builder.build()
    seed = builder.build()

    assert (seed_dir / "user-data.template").read_text() == "#cloud-config\nssh_pwauth: true\n"
    assert seed.user_data.read_text().count("user: alice") == 1
    assert seed.meta_data.read_text().startswith("instance-id: test\n")


def test_iso_command(seed_config, runner, console):
    seed_config.seed_iso_path.write_bytes(b"stale")
    seed = CloudInitSeedBuilder(seed_config, runner, console).build()

    assert runner.commands == [[
        "genisoimage", "-output", str(seed.iso_path), "-volid", "cidata",
        "-joliet", "-rock", "user-data", "meta-data",
    ]]
    assert runner.cwds == [str(seed_config.cloud_init_dir)]
    assert seed.iso_path.read_bytes() == b"iso"


def test_iso_failure_is_fatal(seed_config, console):
    runner = FakeRunner(fail_on={"genisoimage": 1})
    with pytest.raises(ToolInvocationError) as excinfo:
        CloudInitSeedBuilder(seed_config, runner, console).build()
    assert excinfo.value.step == "cloud_init_iso"


@pytest.mark.parametrize("value", ["0755", "yes", "[x]", "a: b: c", "123456", "null", "#hash", "True"])
def test_credentials_read_back_unchanged(config, runner, console, value):
    creds = config.model_copy(update={
        "guest_user": value,
        "guest_password": value,
        "guest_hostname": value,
    })
    seed = CloudInitSeedBuilder(creds, runner, console).build()

    user_data = yaml.safe_load(seed.user_data.read_text())
    assert user_data["user"] == value
    assert user_data["password"] == value
    assert yaml.safe_load(seed.meta_data.read_text())["local-hostname"] == value


def test_plain_values_stay_unquoted():
    assert yaml_scalar("secret") == "secret"
    assert yaml_scalar("myhost") == "myhost"
    assert yaml_scalar("0755") == "'0755'"


def test_template_that_is_not_a_mapping_is_rejected(config, runner, console):
    seed_dir = config.cloud_init_dir
    seed_dir.mkdir(parents=True)
    (seed_dir / "user-data.template").write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError):
        CloudInitSeedBuilder(config, runner, console).build()
    assert runner.commands == []
