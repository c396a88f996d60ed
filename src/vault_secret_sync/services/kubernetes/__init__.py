"""Kubernetes cluster client."""

from .base import ClusterStore
from .client import KubernetesCluster, get_core_api

__all__ = ["ClusterStore", "KubernetesCluster", "get_core_api"]
