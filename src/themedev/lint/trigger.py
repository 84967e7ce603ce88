"""
Lint-on-build trigger.

Every successful style build schedules a lint pass; bursts of builds share
one pass, and no pass runs before the reload proxy is up.
"""

import asyncio
import logging
from typing import Optional

from ..coordination.debounce import DebouncedTask
from ..validation import LinterError
from .stylelint import Stylelint

logger = logging.getLogger(__name__)


class LintOnBuildTrigger:
    """Debounced stylelint runner driven by style pipeline successes."""

    def __init__(
        self,
        linter: Stylelint,
        files: str,
        quiet_period: float = 1.0,
        readiness: Optional[asyncio.Event] = None,
        formatter: str = "string",
    ):
        self.linter = linter
        self.files = files
        self.formatter = formatter
        self.debounced = DebouncedTask(
            self.run_lint, quiet_period=quiet_period, readiness=readiness, name="stylelint pass"
        )

    def notify(self) -> None:
        """Record a style build; the lint pass follows after the quiet period."""
        self.debounced()

    def cancel(self) -> None:
        self.debounced.cancel()

    async def run_lint(self) -> None:
        logger.info("🎨 Running stylelint")
        try:
            result = await self.linter.lint(files=self.files, fix=False, formatter=self.formatter)
        except (LinterError, OSError) as e:
            logger.error(f"❗ Stylelint failed: {e}")
            if isinstance(e, LinterError) and e.output:
                logger.error(e.output)
            return

        if not result.output:
            logger.info("✅ No stylelint issues")
        else:
            logger.warning(f"\n❗ Stylelint found issues:\n\n{result.output}\n")
