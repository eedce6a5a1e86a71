"""Dependency ordering for review clusters.

Dependencies are *inferred* from directory nesting: a cluster whose files
live under ``src/auth/providers`` is assumed to build on whatever changed in
``src/auth``, so the parent is reviewed first. This is a heuristic stand-in
for import analysis and does not track real code dependencies. The inference
step is a plain callable (``EdgeInference``) so a real import-graph analyzer
can replace it without touching the sort.
"""

from __future__ import annotations

import copy
import logging
import posixpath
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from prguide_core.clustering import generate_cluster_name, get_cluster_description
from prguide_core.models import ClusterFile, FileCluster

logger = logging.getLogger(__name__)

# cluster list -> {cluster id: ids of the clusters it depends on}
EdgeInference = Callable[[list[FileCluster]], dict[str, set[str]]]

HAS_TESTS_NOTE = "[Has tests]"

TEST_FILE_PATTERNS = (
    re.compile(r"\.test\.[^/.]+$"),  # auth.test.ts
    re.compile(r"\.spec\.[^/.]+$"),  # auth.spec.js
    re.compile(r"_test\.[^/.]+$"),  # auth_test.go
    re.compile(r"(^|/)test_[^/]*\.[^/.]+$"),  # test_auth.py
    re.compile(r"Test\.[^/.]+$"),  # AuthTest.java
)


@dataclass
class DependencyGraph:
    nodes: list[str] = field(default_factory=list)
    edges: dict[str, set[str]] = field(default_factory=dict)


def cluster_directory(cluster: FileCluster) -> str:
    """Return the deepest directory containing every file of the cluster ("" for root)."""
    directories = [posixpath.dirname(f.path) for f in cluster.files]
    if not directories:
        return ""
    if any(d == "" for d in directories):
        return ""
    return posixpath.commonpath(directories)


def _is_strict_descendant(directory: str, ancestor: str) -> bool:
    return bool(directory) and bool(ancestor) and directory.startswith(ancestor + "/")


def directory_nesting_edges(clusters: list[FileCluster]) -> dict[str, set[str]]:
    """Default edge inference: a cluster depends on clusters in ancestor directories."""
    directories = {c.id: cluster_directory(c) for c in clusters}
    edges: dict[str, set[str]] = {c.id: set() for c in clusters}
    for cluster in clusters:
        for other in clusters:
            if other.id != cluster.id and _is_strict_descendant(directories[cluster.id], directories[other.id]):
                edges[cluster.id].add(other.id)
    return edges


def infer_dependencies(
    clusters: list[FileCluster],
    infer_edges: EdgeInference = directory_nesting_edges,
) -> list[FileCluster]:
    """Return copies of ``clusters`` with ``depends_on`` filled from ``infer_edges``."""
    edges = infer_edges(clusters)
    result = []
    for cluster in clusters:
        updated = copy.deepcopy(cluster)
        updated.depends_on = sorted(edges.get(cluster.id, set()))
        result.append(updated)
    return result


def topological_sort(clusters: list[FileCluster]) -> list[FileCluster]:
    """Order clusters so dependencies come first.

    Depth-first, cycle tolerant: reaching a node that is still being visited
    means a cycle, and that edge is simply dropped. Every cluster appears
    exactly once in the output. ``priority`` is rewritten to the 1-based
    position in the new order, which overrides any path-based priority the
    cluster builder assigned. Ids are left alone so ``depends_on`` stays valid.
    """
    by_id = {c.id: c for c in clusters}
    visited: set[str] = set()
    visiting: set[str] = set()
    ordered: list[FileCluster] = []

    def visit(cluster_id: str) -> None:
        if cluster_id in visited or cluster_id not in by_id:
            return
        if cluster_id in visiting:
            logger.debug("Dependency cycle through %s; dropping edge", cluster_id)
            return
        visiting.add(cluster_id)
        for dep in by_id[cluster_id].depends_on:
            visit(dep)
        visiting.discard(cluster_id)
        visited.add(cluster_id)
        ordered.append(by_id[cluster_id])

    for cluster in clusters:
        visit(cluster.id)

    result = []
    for position, cluster in enumerate(ordered, 1):
        updated = copy.deepcopy(cluster)
        updated.priority = position
        result.append(updated)
    return result


def order_clusters(
    clusters: list[FileCluster],
    infer_edges: EdgeInference = directory_nesting_edges,
) -> list[FileCluster]:
    return topological_sort(infer_dependencies(clusters, infer_edges))


def renumber_clusters(clusters: list[FileCluster]) -> list[FileCluster]:
    """Return copies whose ids are ``cluster-<n>`` for their 1-based position.

    ``depends_on`` entries are remapped to the new ids; references to ids
    outside the list are dropped.
    """
    new_ids = {c.id: f"cluster-{position}" for position, c in enumerate(clusters, 1)}
    result = []
    for cluster in clusters:
        updated = copy.deepcopy(cluster)
        updated.id = new_ids[cluster.id]
        updated.depends_on = sorted(new_ids[dep] for dep in cluster.depends_on if dep in new_ids)
        result.append(updated)
    return result


def analyze_imports(files: list[ClusterFile]) -> DependencyGraph:
    """Build a file-level dependency graph from directory nesting.

    A file at least two directories deep depends on every other file in its
    own directory or an ancestor directory. Despite the name nothing is
    parsed; callers wanting finer ordering than clusters can use it.
    """
    graph = DependencyGraph(nodes=[f.path for f in files], edges={f.path: set() for f in files})

    for f in files:
        if f.path.count("/") < 2:
            continue
        parent = posixpath.dirname(f.path)
        for other in files:
            if other.path == f.path:
                continue
            other_dir = posixpath.dirname(other.path)
            if parent == other_dir or _is_strict_descendant(parent, other_dir):
                graph.edges[f.path].add(other.path)

    return graph


def is_test_file(path: str) -> bool:
    return any(p.search(path) for p in TEST_FILE_PATTERNS)


def _base_name(path: str) -> str:
    stem = path.rsplit("/", 1)[-1].split(".", 1)[0]
    stem = re.sub(r"^test_", "", stem, flags=re.IGNORECASE)
    return re.sub(r"(_test|Test)$", "", stem)


def detect_test_pairs(groups: dict[str, list[ClusterFile]]) -> None:
    """Mark source files that have a matching test file in the same group.

    Mutates ``review_notes`` in place. Safe to run repeatedly: the marker is
    never added twice.
    """
    for files in groups.values():
        test_bases = [_base_name(f.path) for f in files if is_test_file(f.path)]
        test_bases = [b for b in test_bases if b]
        if not test_bases:
            continue

        for source in files:
            if is_test_file(source.path):
                continue
            base = _base_name(source.path)
            if not base or not any(base in t or t in base for t in test_bases):
                continue
            if not source.review_notes:
                source.review_notes = HAS_TESTS_NOTE
            elif HAS_TESTS_NOTE not in source.review_notes:
                source.review_notes += f" {HAS_TESTS_NOTE}"


def build_heuristic_clusters(
    files: list[ClusterFile],
    infer_edges: EdgeInference = directory_nesting_edges,
) -> list[FileCluster]:
    """Directory grouping, test pairing and dependency ordering in one pass."""
    if not files:
        return []

    groups: dict[str, list[ClusterFile]] = {}
    for f in files:
        groups.setdefault(posixpath.dirname(f.path) or ".", []).append(f)

    detect_test_pairs(groups)

    clusters = []
    for index, directory in enumerate(sorted(groups), 1):
        group = groups[directory]
        clusters.append(
            FileCluster(
                id=f"cluster-{index}",
                name=generate_cluster_name("root" if directory == "." else directory),
                description=f"Changes in {directory}: {get_cluster_description(group)}",
                files=group,
                priority=index,
            )
        )

    return renumber_clusters(order_clusters(clusters, infer_edges))
