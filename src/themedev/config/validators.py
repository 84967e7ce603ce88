"""
Configuration validation utilities.

This module turns the raw TOML sections into validated configuration
dataclasses, applying defaults for everything that may be omitted.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..models.config import (
    AppConfig,
    BundlerConfig,
    LintConfig,
    PipelineConfig,
    ProxyConfig,
    ServerConfig,
    TlsConfig,
    WatchConfig,
)
from ..models.events import PipelineId
from ..validation import (
    ValidationError,
    validate_boolean,
    validate_command,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_relative_path,
    validate_string_list,
)

logger = logging.getLogger(__name__)

PIPELINE_PLACEHOLDERS = ("entries", "dist_dir", "tls_key", "tls_cert")
RELOAD_MODES = ["inject", "full", "none"]

DEFAULT_TLS_KEY = "/var/www/certs/localhost-key.pem"
DEFAULT_TLS_CERT = "/var/www/certs/localhost.pem"


def validate_server_config(server_data: Dict[str, Any], theme_dir: Path) -> ServerConfig:
    """
    Validate the `[server]` section.

    Args:
        server_data: Raw server section from TOML
        theme_dir: Already resolved theme directory

    Returns:
        Validated ServerConfig instance
    """
    name = validate_non_empty_string(server_data.get("name", "theme"), "server.name")
    package_json = validate_relative_path(
        server_data.get("package_json", "package.json"), "server.package_json"
    )
    shutdown_timeout = validate_positive_float(
        server_data.get("shutdown_timeout", 10.0),
        min_value=0.1,
        max_value=300.0,
        field_name="server.shutdown_timeout",
    )
    return ServerConfig(
        name=name,
        theme_dir=theme_dir,
        package_json=package_json if package_json.is_absolute() else theme_dir / package_json,
        shutdown_timeout=shutdown_timeout,
    )


def validate_tls_config(tls_data: Dict[str, Any]) -> TlsConfig:
    """
    Validate the `[tls]` section.

    The files are not opened here; a missing certificate surfaces when the
    proxy or the HMR server first tries to use it.
    """
    return TlsConfig(
        key=validate_relative_path(tls_data.get("key", DEFAULT_TLS_KEY), "tls.key"),
        cert=validate_relative_path(tls_data.get("cert", DEFAULT_TLS_CERT), "tls.cert"),
    )


def validate_proxy_config(proxy_data: Dict[str, Any]) -> ProxyConfig:
    """Validate the `[proxy]` section."""
    target = validate_non_empty_string(proxy_data.get("target"), "proxy.target")
    if "://" not in target:
        raise ValidationError(
            f"proxy.target must be a URL with a scheme, got '{target}'",
            field_name="proxy.target",
            value=target,
        )

    return ProxyConfig(
        target=target,
        port=validate_positive_integer(
            proxy_data.get("port", 3000), min_value=1, max_value=65535, field_name="proxy.port"
        ),
        command=validate_command(
            proxy_data.get("command", ["npx", "browser-sync"]), field_name="proxy.command"
        ),
        browser=validate_non_empty_string(
            proxy_data.get("browser", "google chrome"), "proxy.browser"
        ),
        notify=validate_boolean(proxy_data.get("notify", True), "proxy.notify"),
        inject_changes=validate_boolean(
            proxy_data.get("inject_changes", True), "proxy.inject_changes"
        ),
        startup_timeout=validate_positive_float(
            proxy_data.get("startup_timeout", 30.0),
            min_value=1.0,
            max_value=600.0,
            field_name="proxy.startup_timeout",
        ),
        ready_marker=validate_non_empty_string(
            proxy_data.get("ready_marker", "Access URLs"), "proxy.ready_marker"
        ),
    )


def validate_bundler_config(bundler_data: Dict[str, Any]) -> BundlerConfig:
    """Validate the `[bundler]` section."""
    return BundlerConfig(
        max_workers=validate_positive_integer(
            bundler_data.get("max_workers", 2),
            min_value=1,
            max_value=64,
            field_name="bundler.max_workers",
        )
    )


def _validate_pipeline(pipeline_data: Dict[str, Any], index: int) -> PipelineConfig:
    prefix = f"pipelines[{index}]"

    role = validate_enum_choice(
        pipeline_data.get("role"),
        valid_choices=[p.value for p in PipelineId],
        field_name=f"{prefix}.role",
    )
    reload_mode = validate_enum_choice(
        pipeline_data.get("reload", "inject" if role == "style" else "full"),
        valid_choices=RELOAD_MODES,
        field_name=f"{prefix}.reload",
    )
    reload_path = pipeline_data.get("reload_path")
    if reload_mode == "inject":
        reload_path = validate_non_empty_string(reload_path, f"{prefix}.reload_path")
    elif reload_path is not None:
        reload_path = validate_non_empty_string(reload_path, f"{prefix}.reload_path")

    return PipelineConfig(
        pipeline_id=PipelineId(role),
        label=validate_non_empty_string(pipeline_data.get("label", role.title()), f"{prefix}.label"),
        entries=validate_string_list(pipeline_data.get("entries"), f"{prefix}.entries"),
        dist_dir=validate_relative_path(pipeline_data.get("dist_dir"), f"{prefix}.dist_dir"),
        watch=validate_string_list(pipeline_data.get("watch"), f"{prefix}.watch"),
        command=validate_command(
            pipeline_data.get("command"),
            field_name=f"{prefix}.command",
            allowed_placeholders=PIPELINE_PLACEHOLDERS,
        ),
        hmr_command=validate_command(
            pipeline_data.get("hmr_command", []),
            field_name=f"{prefix}.hmr_command",
            allowed_placeholders=PIPELINE_PLACEHOLDERS,
        ) if pipeline_data.get("hmr_command") else [],
        reload=reload_mode,
        reload_path=reload_path,
    )


def validate_pipelines_config(pipelines_data: List[Dict[str, Any]]) -> List[PipelineConfig]:
    """
    Validate the `[[pipelines]]` entries.

    Exactly one style and one script pipeline must be configured. The
    result is ordered style first.

    Raises:
        ValidationError: If a pipeline is invalid or a role is missing/duplicated
    """
    if not isinstance(pipelines_data, list):
        raise ValidationError("pipelines must be an array of tables", field_name="pipelines")

    pipelines = [_validate_pipeline(data, i) for i, data in enumerate(pipelines_data)]

    by_role = {}
    for pipeline in pipelines:
        if pipeline.pipeline_id in by_role:
            raise ValidationError(
                f"Duplicate pipeline role '{pipeline.pipeline_id.value}'",
                field_name="pipelines",
                value=pipeline.pipeline_id.value,
            )
        by_role[pipeline.pipeline_id] = pipeline

    missing = [p.value for p in PipelineId if p not in by_role]
    if missing:
        raise ValidationError(
            f"Missing pipeline role(s): {', '.join(missing)}",
            field_name="pipelines",
            value=missing,
        )

    return [by_role[PipelineId.STYLE], by_role[PipelineId.SCRIPT]]


def validate_lint_config(lint_data: Dict[str, Any]) -> LintConfig:
    """Validate the `[lint]` section."""
    return LintConfig(
        enabled=validate_boolean(lint_data.get("enabled", True), "lint.enabled"),
        command=validate_command(
            lint_data.get("command", ["npx", "stylelint"]), field_name="lint.command"
        ),
        files=validate_non_empty_string(lint_data.get("files", "sass/**/*.scss"), "lint.files"),
        formatter=validate_non_empty_string(lint_data.get("formatter", "string"), "lint.formatter"),
        quiet_period_ms=validate_positive_integer(
            lint_data.get("quiet_period_ms", 1000),
            min_value=0,
            max_value=60000,
            field_name="lint.quiet_period_ms",
        ),
    )


def validate_watch_config(watch_data: Dict[str, Any]) -> WatchConfig:
    """Validate the `[watch]` section."""
    return WatchConfig(
        patterns=validate_string_list(watch_data.get("patterns", ["**/*.php"]), "watch.patterns"),
        ignore=validate_string_list(
            watch_data.get("ignore", ["node_modules/**", "vendor/**"]),
            "watch.ignore",
            allow_empty=True,
        ),
    )


def validate_app_config(config_data: Dict[str, Any], theme_dir: Path) -> AppConfig:
    """
    Validate a complete configuration document.

    Raises:
        ValidationError: If any section is invalid
    """
    app_config = AppConfig(
        server=validate_server_config(config_data.get("server", {}), theme_dir),
        proxy=validate_proxy_config(config_data.get("proxy", {})),
        tls=validate_tls_config(config_data.get("tls", {})),
        bundler=validate_bundler_config(config_data.get("bundler", {})),
        pipelines=validate_pipelines_config(config_data.get("pipelines", [])),
        lint=validate_lint_config(config_data.get("lint", {})),
        watch=validate_watch_config(config_data.get("watch", {})),
    )
    logger.debug(f"Validated configuration for theme at {theme_dir}")
    return app_config
