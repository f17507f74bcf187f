"""
Reconcile module for the rollout daemon.

Exports:
    ReconcileLoop: Daemon re-running rollout passes at a fixed interval
    FileClusterSource: Cluster source reading declared clusters from YAML
    load_clusters: Parse cluster documents from a YAML file
"""

from es_rollout_core.reconcile.loop import ReconcileLoop
from es_rollout_core.reconcile.source import FileClusterSource, load_clusters

__all__ = ["ReconcileLoop", "FileClusterSource", "load_clusters"]
