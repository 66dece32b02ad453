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
Blocking execution of external tools with per-step failure severity.
"""
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Dict, Optional

from ..errors import ToolInvocationError
from ..MODELS.run_config import Severity
from ..UTILS.console import Console

# Exit status used when the executable itself cannot be found
COMMAND_NOT_FOUND = 127


@dataclass
class ProcessResult:
    """Outcome of one external command."""

    command: List[str]
    returncode: int
    step: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """
    Runs external tools one at a time and waits for them to exit.

    Output of the tools goes straight to the terminal, so long operations like
    virt-install stay visible to the user.
    """
    def __init__(self, console: Optional[Console] = None, env: Optional[Dict[str, str]] = None):
        """
        Initializes the process runner.

        Args:
            console (Optional[Console]): Where status lines are printed.
            env (Optional[Dict[str, str]]): Environment for child processes, inherited if None.
        """
        self.console = console or Console()
        self.env = env
        self.history: List[ProcessResult] = []

    def run(self, command: List[str], cwd: Optional[str] = None) -> ProcessResult:
        """
        Runs a command to completion.

        Args:
            command (List[str]): Command and arguments to execute.
            cwd (Optional[str]): Directory to run the command in.

        Returns:
            ProcessResult: The command and its exit status.
        """
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                env=self.env,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
            returncode = completed.returncode
        except FileNotFoundError:
            self.console.info(f"{command[0]}: command not found")
            returncode = COMMAND_NOT_FOUND

        result = ProcessResult(command=list(command), returncode=returncode)
        self.history.append(result)
        return result

    def run_step(self,
                 step: str,
                 command: List[str],
                 severity: Severity,
                 failure_message: Optional[str] = None,
                 cwd: Optional[str] = None) -> bool:
        """
        Runs a command as a named pipeline step.

        A failed fatal step raises, a failed warning step prints a warning,
        a failed ignored step is silent.

        Args:
            step (str): Step name, used in messages and errors.
            command (List[str]): Command and arguments to execute.
            severity (Severity): What a non-zero exit means for the run.
            failure_message (Optional[str]): Message to report on failure.
            cwd (Optional[str]): Directory to run the command in.

        Returns:
            bool: True if the command exited with status 0.

        Raises:
            ToolInvocationError: If the command failed and the step is fatal.
        """
        result = self.run(command, cwd=cwd)
        result.step = step
        if result.ok:
            return True

        message = failure_message or f"Step '{step}' failed: {' '.join(command)} exited with {result.returncode}"
        if severity == Severity.FATAL:
            raise ToolInvocationError(message, step=step, command=result.command, returncode=result.returncode)
        if severity == Severity.WARNING:
            self.console.warn(message)
        return False

    @staticmethod
    def which(tool: str) -> Optional[str]:
        """
        Locates an executable on PATH.

        Returns:
            Optional[str]: Absolute path of the tool, or None if it is not installed.
        """
        return shutil.which(tool)
