# ABOUTME: Utilities package initialization for sidra-ingress-sync
# ABOUTME: Contains the cluster, HTTP, logging and snapshot collaborators

"""
sidra-ingress-sync Utilities Package

Shared utilities:
    - client.py: Config applier HTTP client
    - kube.py: Kubernetes credential loading and ingress enumeration
    - logging.py: Structured logging with run IDs and the audit trail
    - snapshot.py: Snapshot store used to detect deleted ingresses
"""
