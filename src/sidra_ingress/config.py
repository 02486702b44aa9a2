# ABOUTME: Configuration management for sidra-ingress-sync
# ABOUTME: Handles environment variables, plugin hub constants, and sync options

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module holds every tunable value of the sync job. It:

1. READS environment variables (like SIDRA_SYNC_APPLIER_URL)
2. VALIDATES them (URLs get a scheme, log levels must be known, etc.)
3. PROVIDES typed access to settings for the renderer, client and pipeline

All defaults reproduce the fixed behaviour of the job: with no environment
set, configs are posted to http://localhost:3033/api/v1/nginx/conf and every
location proxies to satpam-service-app:8080.

=============================================================================
ARCHITECTURE: TWO CONFIGURATION CLASSES
=============================================================================

1. ProxySettings: What goes INTO the rendered nginx config (SIDRA_PROXY_*)
   - listen port, plugin hub service/port, plugin annotation key

2. SyncSettings: How the job RUNS (SIDRA_SYNC_*)
   - applier endpoint, enumeration strategy, kube credentials,
     snapshot and audit paths, dry-run, logging
   - Contains ProxySettings as nested object

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

Rendered config (SIDRA_PROXY_ prefix):
    SIDRA_PROXY_LISTEN_PORT         -> `listen` port in the server block (8080)
    SIDRA_PROXY_HUB_SERVICE         -> Plugin hub service (satpam-service-app)
    SIDRA_PROXY_HUB_PORT            -> Plugin hub port (8080)
    SIDRA_PROXY_PLUGINS_ANNOTATION  -> Annotation holding the plugin list

Job behaviour (SIDRA_SYNC_ prefix):
    SIDRA_SYNC_APPLIER_URL      -> Config applier base URL
    SIDRA_SYNC_APPLIER_PATH     -> Path configs are POSTed to
    SIDRA_SYNC_APPLIER_TIMEOUT  -> Request timeout in seconds (unset = none)
    SIDRA_SYNC_STRATEGY         -> "cluster" or "namespaced"
    SIDRA_SYNC_NAMESPACES       -> JSON list of namespaces to walk
    SIDRA_SYNC_KUBECONFIG       -> Kubeconfig file (unset = ~/.kube/config)
    SIDRA_SYNC_KUBE_CONTEXT     -> Kubeconfig context
    SIDRA_SYNC_IN_CLUSTER       -> Use the pod service account
    SIDRA_SYNC_SNAPSHOT_PATH    -> Snapshot file enabling DELETE detection
    SIDRA_SYNC_AUDIT_LOG        -> JSON-lines audit file
    SIDRA_SYNC_DRY_RUN          -> Render and log only, send nothing
    SIDRA_SYNC_LOG_LEVEL        -> DEBUG, INFO, WARNING, ERROR, CRITICAL
    SIDRA_SYNC_JSON_LOGS        -> Emit JSON log lines
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# RENDERED CONFIG SETTINGS
# =============================================================================


class ProxySettings(BaseSettings):
    """
    Values embedded in every rendered nginx server block.

    Every location forwards to the plugin hub, whatever backend the Ingress
    itself declares. The Ingress backend travels along only as the
    ServiceName/ServicePort headers.
    """

    model_config = SettingsConfigDict(env_prefix="SIDRA_PROXY_")

    listen_port: int = Field(
        default=8080,
        description="Port in the `listen` directive of each server block",
    )

    hub_service: str = Field(
        default="satpam-service-app",
        description="Plugin hub service name used in proxy_pass",
    )

    hub_port: int = Field(
        default=8080,
        description="Plugin hub port used in proxy_pass",
    )

    plugins_annotation: str = Field(
        default="sidra.id/plugins",
        description="Ingress annotation holding the comma-delimited plugin list",
    )
    # A missing annotation renders as an empty Plugins header, never an error.

    @property
    def hub_url(self) -> str:
        """proxy_pass target, e.g. http://satpam-service-app:8080."""
        return f"http://{self.hub_service}:{self.hub_port}"


# =============================================================================
# MAIN SYNC SETTINGS
# =============================================================================


class SyncSettings(BaseSettings):
    """
    Main job configuration.

    USAGE:
    ------
        settings = load_settings()  # Reads from environment
        print(settings.applier_endpoint)  # Full POST URL
        print(settings.proxy.hub_url)  # Nested proxy setting
    """

    model_config = SettingsConfigDict(
        env_prefix="SIDRA_SYNC_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # CONFIG APPLIER
    # -------------------------------------------------------------------------

    applier_url: str = Field(
        default="http://localhost:3033",
        description="Base URL of the local config applier",
    )

    applier_path: str = Field(
        default="/api/v1/nginx/conf",
        description="Path rendered configs are POSTed to",
    )

    applier_timeout: float | None = Field(
        default=None,
        description="Request timeout in seconds; None waits indefinitely",
    )

    # -------------------------------------------------------------------------
    # CLUSTER ACCESS
    # -------------------------------------------------------------------------

    strategy: Literal["cluster", "namespaced"] = Field(
        default="cluster",
        description="List ingresses in one cluster-wide call or per namespace",
    )
    # "cluster":    one list_ingress_for_all_namespaces call
    # "namespaced": list namespaces first, then list ingresses in each one.
    #               A failing namespace is skipped, not fatal.

    namespaces: list[str] = Field(
        default_factory=list,
        description="Namespaces to walk with the namespaced strategy",
    )
    # Empty means "every namespace the API returns".

    kubeconfig: Path | None = Field(
        default=None,
        description="Kubeconfig file; None uses the client default (~/.kube/config)",
    )

    kube_context: str | None = Field(
        default=None,
        description="Kubeconfig context to activate",
    )

    in_cluster: bool = Field(
        default=False,
        description="Authenticate with the mounted service account",
    )

    # -------------------------------------------------------------------------
    # DELETION DETECTION AND AUDIT
    # -------------------------------------------------------------------------

    snapshot_path: Path | None = Field(
        default=None,
        description="Snapshot of the previous run; enables DELETE events",
    )
    # Without a snapshot there is nothing to compare against, so no DELETE
    # events are produced.

    audit_log: Path | None = Field(
        default=None,
        description="Path to JSON-lines audit log of dispatch outcomes",
    )

    dry_run: bool = Field(
        default=False,
        description="Render and log configs without sending them",
    )

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    json_logs: bool = Field(
        default=False,
        description="Render log events as JSON instead of console text",
    )

    # -------------------------------------------------------------------------
    # NESTED PROXY SETTINGS
    # -------------------------------------------------------------------------

    proxy: ProxySettings = Field(default_factory=ProxySettings)

    # -------------------------------------------------------------------------
    # VALIDATORS AND COMPUTED PROPERTIES
    # -------------------------------------------------------------------------

    @field_validator("applier_url")
    @classmethod
    def validate_applier_url(cls, v: str) -> str:
        """
        Ensure the applier URL has a scheme and no trailing slash.

        The applier listens on plain HTTP on localhost, so a bare
        "localhost:3033" becomes "http://localhost:3033".
        """
        if not v.startswith(("http://", "https://")):
            v = f"http://{v}"
        return v.rstrip("/")

    @field_validator("applier_path")
    @classmethod
    def validate_applier_path(cls, v: str) -> str:
        """Ensure the applier path starts with a single slash."""
        return "/" + v.lstrip("/")

    @property
    def applier_endpoint(self) -> str:
        """Full URL configs are POSTed to."""
        return f"{self.applier_url}{self.applier_path}"


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> SyncSettings:
    """
    Load settings from environment with validation.

    If SIDRA_SYNC_ENV_FILE is set, additional variables are read from that
    file. Useful for local development:

        SIDRA_SYNC_APPLIER_URL=http://localhost:3033
        SIDRA_SYNC_STRATEGY=namespaced
        SIDRA_SYNC_DRY_RUN=true

    Returns:
        Fully validated SyncSettings instance.

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return SyncSettings(
        _env_file=os.environ.get("SIDRA_SYNC_ENV_FILE"),
    )
