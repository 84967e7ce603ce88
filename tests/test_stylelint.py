"""
Tests for the stylelint wrapper and the lint-on-build trigger.
"""

import asyncio
import logging
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from themedev.lint import LintOnBuildTrigger, LintResult, Stylelint
from themedev.system import CommandResult
from themedev.validation import LinterError

RUN_COMMAND = "themedev.lint.stylelint.run_command"


@pytest.fixture
def stylelint():
    return Stylelint(["npx", "stylelint"], Path("/srv/theme"))


class TestStylelint:

    def test_build_command(self, stylelint):
        assert stylelint.build_command("sass/**/*.scss", fix=False, formatter="string") == [
            "npx", "stylelint", "sass/**/*.scss", "--formatter", "string",
        ]

    def test_build_command_with_fix(self, stylelint):
        command = stylelint.build_command("sass/**/*.scss", fix=True, formatter="verbose")

        assert command[-3:] == ["--formatter", "verbose", "--fix"]

    @pytest.mark.asyncio
    async def test_clean_run(self, stylelint):
        with patch(RUN_COMMAND, AsyncMock(return_value=CommandResult(0, "", ""))) as run:
            result = await stylelint.lint("sass/**/*.scss")

        assert result == LintResult(output="", errored=False)
        run.assert_awaited_once()
        assert run.await_args.args[1] == Path("/srv/theme")

    @pytest.mark.asyncio
    async def test_lint_problems_are_a_result(self, stylelint):
        report = "sass/global.scss\n 3:5  ✖  Unexpected empty block  block-no-empty\n"
        with patch(RUN_COMMAND, AsyncMock(return_value=CommandResult(2, "", report))):
            result = await stylelint.lint("sass/**/*.scss")

        assert result.errored is True
        assert "block-no-empty" in result.output

    @pytest.mark.asyncio
    async def test_warnings_only_exit_cleanly_with_output(self, stylelint):
        report = "sass/global.scss\n 1:1  ⚠  Expected indentation\n"
        with patch(RUN_COMMAND, AsyncMock(return_value=CommandResult(0, report, ""))):
            result = await stylelint.lint("sass/**/*.scss")

        assert result.errored is False
        assert result.output.startswith("sass/global.scss")

    @pytest.mark.asyncio
    async def test_abnormal_exit_raises(self, stylelint):
        with patch(RUN_COMMAND, AsyncMock(return_value=CommandResult(78, "", "Invalid config"))):
            with pytest.raises(LinterError) as exc_info:
                await stylelint.lint("sass/**/*.scss")

        assert exc_info.value.returncode == 78
        assert exc_info.value.output == "Invalid config"

    @pytest.mark.asyncio
    async def test_missing_executable_raises(self, stylelint):
        with patch(RUN_COMMAND, AsyncMock(side_effect=FileNotFoundError("npx"))):
            with pytest.raises(LinterError, match="Could not run npx"):
                await stylelint.lint("sass/**/*.scss")


def make_trigger(linter, readiness=None):
    return LintOnBuildTrigger(linter, "sass/**/*.scss", quiet_period=0.02, readiness=readiness)


class TestLintOnBuildTrigger:

    @pytest.mark.asyncio
    async def test_burst_of_builds_lints_once(self):
        linter = Mock()
        linter.lint = AsyncMock(return_value=LintResult(""))
        trigger = make_trigger(linter)

        for _ in range(4):
            trigger.notify()
            await asyncio.sleep(0.005)
        await trigger.debounced.wait()

        linter.lint.assert_awaited_once_with(files="sass/**/*.scss", fix=False, formatter="string")

    @pytest.mark.asyncio
    async def test_waits_for_proxy_readiness(self):
        linter = Mock()
        linter.lint = AsyncMock(return_value=LintResult(""))
        ready = asyncio.Event()
        trigger = make_trigger(linter, readiness=ready)

        trigger.notify()
        await asyncio.sleep(0.06)
        linter.lint.assert_not_awaited()

        ready.set()
        await trigger.debounced.wait()
        linter.lint.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_clean_report(self, caplog):
        linter = Mock()
        linter.lint = AsyncMock(return_value=LintResult(""))
        trigger = make_trigger(linter)

        with caplog.at_level(logging.INFO):
            await trigger.run_lint()

        assert "No stylelint issues" in caplog.text

    @pytest.mark.asyncio
    async def test_issues_reported_as_warning(self, caplog):
        linter = Mock()
        linter.lint = AsyncMock(return_value=LintResult("3:5 Unexpected empty block", errored=True))
        trigger = make_trigger(linter)

        with caplog.at_level(logging.INFO):
            await trigger.run_lint()

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Unexpected empty block" in warnings[0].getMessage()

    @pytest.mark.asyncio
    async def test_linter_failure_is_logged_and_swallowed(self, caplog):
        linter = Mock()
        linter.lint = AsyncMock(side_effect=LinterError("stylelint exited with code 78",
                                                        returncode=78, output="Invalid config"))
        trigger = make_trigger(linter)

        with caplog.at_level(logging.ERROR):
            await trigger.run_lint()

        assert "Stylelint failed" in caplog.text
        assert "Invalid config" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_pass(self):
        linter = Mock()
        linter.lint = AsyncMock(return_value=LintResult(""))
        trigger = make_trigger(linter)

        trigger.notify()
        trigger.cancel()
        await trigger.debounced.wait()

        linter.lint.assert_not_awaited()
