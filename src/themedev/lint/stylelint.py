"""
Stylelint wrapper.

Runs the stylelint CLI and separates lint problems (a normal outcome) from
the tool itself failing.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from ..system import run_command
from ..validation import LinterError

logger = logging.getLogger(__name__)

# stylelint CLI exit codes
EXIT_OK = 0
EXIT_LINT_PROBLEMS = 2


@dataclass
class LintResult:
    """Formatted report and whether any rule reported an error."""

    output: str
    errored: bool = False


class Stylelint:
    """Invokes stylelint over a set of files from the theme directory."""

    def __init__(self, command: Sequence[str], cwd: Path):
        self.command = list(command)
        self.cwd = cwd

    def build_command(self, files: str, fix: bool, formatter: str) -> List[str]:
        command = self.command + [files, "--formatter", formatter]
        if fix:
            command.append("--fix")
        return command

    async def lint(self, files: str, fix: bool = False, formatter: str = "string") -> LintResult:
        """
        Lint ``files`` (a glob) and return the formatted report.

        Raises:
            LinterError: If stylelint could not run or exited abnormally
        """
        command = self.build_command(files, fix, formatter)
        try:
            result = await run_command(command, self.cwd)
        except OSError as e:
            raise LinterError(f"Could not run {command[0]}: {e}") from e

        # Depending on the stylelint version the report goes to stdout or stderr.
        output = (result.stdout + result.stderr).strip()
        if result.returncode == EXIT_OK:
            return LintResult(output=output, errored=False)
        if result.returncode == EXIT_LINT_PROBLEMS:
            return LintResult(output=output, errored=True)

        raise LinterError(
            f"stylelint exited with code {result.returncode}",
            returncode=result.returncode,
            output=output,
        )
