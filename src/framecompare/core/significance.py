"""Pass/fail verdict from a cluster analysis."""
from __future__ import annotations

from ..presets import CompareParams
from .types import Cluster, ClusterAnalysis


def is_significant(cluster: Cluster, params: CompareParams) -> bool:
    """A cluster counts towards the verdict unless it is a line shift or too small."""

    return not cluster.is_line_shift and cluster.size >= params.min_cluster_size


def evaluate_significance(analysis: ClusterAnalysis, params: CompareParams) -> bool:
    if analysis.significant_pixels == 0:
        return True
    return (
        analysis.significant_pixels <= params.max_total_diff_pixels
        and analysis.significant_clusters <= params.max_significant_clusters
    )
