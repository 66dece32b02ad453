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
Colored status lines on standard output.
"""
from typing import Optional

import click


class Console:
    """
    Prints bold green SUCCESS, yellow WARN and red ERROR lines.
    """
    def __init__(self, color: Optional[bool] = None):
        """
        :param color: Force color on or off. None lets click decide from the terminal.
        """
        self.color = color

    def info(self, message: str):
        click.echo(message, color=self.color)

    def ok(self, message: str):
        click.secho(f"SUCCESS: {message}", fg="green", bold=True, color=self.color)

    def warn(self, message: str):
        click.secho(f"WARN: {message}", fg="yellow", bold=True, color=self.color)

    def error(self, message: str):
        click.secho(f"ERROR: {message}", fg="red", bold=True, color=self.color)
