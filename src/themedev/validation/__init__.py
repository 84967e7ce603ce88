"""
Validation and error handling for the themedev package.

This module provides input validation for configuration data and the error
types and helpers used for consistent error reporting across the dev server.
"""

from .exceptions import (
    DevServerError,
    ErrorSeverity,
    LinterError,
    PipelineError,
    ProxyStartupError,
    ValidationError,
    handle_cli_error,
    handle_error,
)
from .validators import (
    validate_boolean,
    validate_command,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_relative_path,
    validate_string_list,
)

__all__ = [
    # Errors
    "DevServerError",
    "ErrorSeverity",
    "LinterError",
    "PipelineError",
    "ProxyStartupError",
    "ValidationError",
    "handle_cli_error",
    "handle_error",
    # Validators
    "validate_boolean",
    "validate_command",
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_relative_path",
    "validate_string_list",
]
