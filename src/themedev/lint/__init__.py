"""
Style linting: the stylelint wrapper and the lint-on-build trigger.
"""

from .stylelint import LintResult, Stylelint
from .trigger import LintOnBuildTrigger

__all__ = [
    "LintOnBuildTrigger",
    "LintResult",
    "Stylelint",
]
