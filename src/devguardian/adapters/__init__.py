"""Adapter layer package for cluster access and policy evaluation."""

from .cluster_source import ClusterSource, ConnectivityError, KubernetesClusterSource, ManifestFileSource
from .policy_engine import CompiledModule, OpaPolicyEvaluator, PolicyError, PolicyEvaluator

__all__ = [
    "ClusterSource",
    "CompiledModule",
    "ConnectivityError",
    "KubernetesClusterSource",
    "ManifestFileSource",
    "OpaPolicyEvaluator",
    "PolicyError",
    "PolicyEvaluator",
]
