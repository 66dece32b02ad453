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
Resolution of build settings from the process environment and dotenv files.
"""
import os
from pathlib import Path
from typing import Dict, Optional, Union

from dotenv import dotenv_values

DEFAULT_ENV_FILE = ".env"


def load_environment(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """
    Merges a dotenv file underneath the process environment.

    Variables already set in the environment always win; the file only
    supplies values that are missing. A missing file is not an error.

    :param env_file: Path to a dotenv file.
    :param environ: The environment to overlay, defaults to os.environ.
    :return: The merged variables.
    """
    merged: Dict[str, str] = {}

    if env_file and os.path.isfile(env_file):
        for key, value in dotenv_values(env_file).items():
            if value is not None:
                merged[key] = value

    merged.update(environ if environ is not None else os.environ)
    return merged
