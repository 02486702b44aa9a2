# ABOUTME: sidra-ingress-sync package initialization
# ABOUTME: Exposes version information for the ingress-to-nginx sync job

"""
sidra-ingress-sync - Render Kubernetes Ingresses into nginx server blocks.

=============================================================================
WHAT DOES THIS PACKAGE DO?
=============================================================================

A one-shot job that:

1. LISTS Ingress objects in a cluster (cluster-wide or namespace by namespace)
2. RENDERS each Ingress into an nginx `server { ... }` block whose locations
   all proxy to the plugin hub
3. POSTS each block to the local config applier
   (http://localhost:3033/api/v1/nginx/conf)
4. REPORTS ingresses that vanished since the previous run as DELETE events

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

sidra_ingress/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── config.py            <- Settings (env vars, plugin hub constants)
├── renderer.py          <- Ingress -> nginx config text
├── sync.py              <- Enumerate -> render -> dispatch pipeline, CLI main
└── utils/
    ├── __init__.py      <- Utils subpackage marker
    ├── client.py        <- HTTP client for the config applier
    ├── kube.py          <- Kubernetes credential loading and ingress listing
    ├── logging.py       <- Structured logging with run IDs and audit trail
    └── snapshot.py      <- Previous-run snapshot for deletion detection
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
