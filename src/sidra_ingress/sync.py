# ABOUTME: Ingress sync pipeline and command-line entry point
# ABOUTME: Enumerates ingresses, renders nginx configs and dispatches them one by one

"""
The enumerate -> render -> dispatch pipeline.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

`main()` is the `sidra-ingress-sync` console script. It takes no arguments;
everything comes from SIDRA_SYNC_* / SIDRA_PROXY_* environment variables
(see config.py). A run:

1. Loads settings and configures logging
2. Loads cluster credentials and builds the Kubernetes clients
3. Lists ingresses (cluster-wide or per namespace)
4. For each ingress, in API order: renders a CREATE record and POSTs it
5. If a snapshot path is configured: POSTs DELETE records for ingresses
   that disappeared since the previous run, then writes the new snapshot

=============================================================================
ERROR HANDLING
=============================================================================

Fatal (exit status 1):
    invalid settings, credential load failure, top-level listing failure

Logged and skipped (run continues):
    one namespace failing to list, one ingress failing to render,
    one config failing to reach the applier, snapshot read/write problems

Warning only:
    applier answering with a non-2xx status

Some configs failing while others succeed is a normal outcome and still
exits with status 0.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from structlog.contextvars import bound_contextvars

from sidra_ingress import __version__
from sidra_ingress.config import load_settings
from sidra_ingress.renderer import build_create_config, build_delete_config
from sidra_ingress.utils.client import ConfigApplierClient, DispatchError
from sidra_ingress.utils.kube import (
    IngressEnumerator,
    KubeApiError,
    KubeConfigError,
    load_kube_clients,
)
from sidra_ingress.utils.logging import AuditLogger, configure_logging, set_run_id
from sidra_ingress.utils.snapshot import IngressSnapshot, detect_deletions

if TYPE_CHECKING:
    from sidra_ingress.config import SyncSettings
    from sidra_ingress.renderer import NginxConfig
    from sidra_ingress.utils.kube import EnumerationResult, IngressKey

logger = structlog.get_logger(__name__)


@dataclass
class SyncReport:
    """
    Outcome counters of one run, across CREATE and DELETE records.

    Returned by run_sync for callers and tests. The job itself does not log
    it.
    """

    sent: int = 0
    rejected: int = 0
    failed: int = 0
    dry_run: int = 0
    deletions: int = 0


# =============================================================================
# PIPELINE
# =============================================================================


def _dispatch(
    config: NginxConfig,
    key: IngressKey,
    applier: ConfigApplierClient,
    audit: AuditLogger,
    report: SyncReport,
    dry_run: bool,
) -> bool:
    """
    Send one record and account for the outcome.

    Returns:
        False only when the applier could not be reached.
    """
    target = str(key)

    if dry_run:
        logger.info("Dry run, not sending nginx config")
        logger.debug("Rendered nginx config", config=config.config)
        audit.log_dry_run(config.type_event, target)
        report.dry_run += 1
        return True

    try:
        status = applier.send(config)
    except DispatchError as e:
        logger.error("Error sending nginx config", error=e.message)
        audit.log_error(config.type_event, target, e.message)
        report.failed += 1
        return False

    if 200 <= status < 300:
        audit.log_sent(config.type_event, target, status)
        report.sent += 1
    else:
        audit.log_rejected(config.type_event, target, status)
        report.rejected += 1
    return True


def _sync_deletions(
    settings: SyncSettings,
    result: EnumerationResult,
    applier: ConfigApplierClient,
    audit: AuditLogger,
    report: SyncReport,
) -> None:
    """Report ingresses gone since the previous run and write the new snapshot."""
    if settings.snapshot_path is None:
        return

    snapshot = IngressSnapshot(settings.snapshot_path)
    previous = snapshot.load()
    current = {record.key for record in result.ingresses}
    deleted = detect_deletions(
        previous, current, result.failed_namespaces, result.walked_namespaces
    )
    report.deletions = len(deleted)
    if deleted:
        logger.info("Detected deleted ingresses", count=len(deleted))

    undelivered: set[IngressKey] = set()
    for key in deleted:
        with bound_contextvars(namespace=key.namespace, ingress=key.name):
            config = build_delete_config(key)
            if not _dispatch(config, key, applier, audit, report, settings.dry_run):
                undelivered.add(key)

    if settings.dry_run:
        return

    # Keys from namespaces not listed this run and undelivered DELETEs stay in
    # the snapshot so the next run sees them again.
    retained = {key for key in previous if not result.covers(key.namespace)}
    snapshot.save(current | retained | undelivered)


def run_sync(
    settings: SyncSettings,
    enumerator: IngressEnumerator,
    applier: ConfigApplierClient,
    audit: AuditLogger,
) -> SyncReport:
    """
    Run one full sync pass.

    Ingresses are handled strictly one after another; a failure on one never
    prevents the next from being attempted.

    Returns:
        The run's SyncReport. main() does not log or act on it.

    Raises:
        KubeApiError: If the top-level listing fails.
    """
    report = SyncReport()
    result = enumerator.list_ingresses()

    for record in result.ingresses:
        with bound_contextvars(namespace=record.namespace, ingress=record.name):
            try:
                config = build_create_config(record, settings.proxy)
            except ValueError as e:
                logger.error("Error rendering nginx config", error=str(e))
                audit.log_error("CREATE", str(record.key), str(e))
                report.failed += 1
                continue
            _dispatch(config, record.key, applier, audit, report, settings.dry_run)

    _sync_deletions(settings, result, applier, audit, report)

    logger.info("Sync finished", ingresses=len(result.ingresses))
    return report


# =============================================================================
# ENTRY POINT
# =============================================================================


def main() -> None:
    """Run one ingress sync and exit."""
    set_run_id("")

    try:
        settings = load_settings()
    except ValidationError as e:
        configure_logging()
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)

    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    logger.info(
        "sidra-ingress-sync starting",
        version=__version__,
        strategy=settings.strategy,
        applier=settings.applier_endpoint,
        dry_run=settings.dry_run,
    )

    try:
        networking, core = load_kube_clients(
            kubeconfig=settings.kubeconfig,
            context=settings.kube_context,
            in_cluster=settings.in_cluster,
        )
        enumerator = IngressEnumerator(
            networking,
            core,
            strategy=settings.strategy,
            namespaces=settings.namespaces,
        )
        with ConfigApplierClient(
            settings.applier_url,
            path=settings.applier_path,
            timeout=settings.applier_timeout,
        ) as applier:
            run_sync(settings, enumerator, applier, AuditLogger(settings.audit_log))
    except (KubeConfigError, KubeApiError) as e:
        logger.error("Cluster error", error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Sync interrupted")
        sys.exit(130)
    except Exception as e:
        logger.error("Sync error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
