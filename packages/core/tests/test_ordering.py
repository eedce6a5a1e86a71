"""Tests for dependency inference and cluster ordering."""

from prguide_core.models import ClusterFile, FileCluster
from prguide_core.ordering import (
    HAS_TESTS_NOTE,
    analyze_imports,
    build_heuristic_clusters,
    cluster_directory,
    detect_test_pairs,
    directory_nesting_edges,
    infer_dependencies,
    is_test_file,
    order_clusters,
    renumber_clusters,
    topological_sort,
)


def _cluster(cluster_id, paths, depends_on=None, priority=1):
    return FileCluster(
        id=cluster_id,
        name=cluster_id,
        description="",
        files=[ClusterFile(path=p, change_type="modified") for p in paths],
        priority=priority,
        depends_on=list(depends_on or []),
    )


# ---------------------------------------------------------------------------
# Inference
# ---------------------------------------------------------------------------


class TestClusterDirectory:
    def test_common_directory(self):
        c = _cluster("c1", ["src/auth/a.py", "src/auth/providers/b.py"])
        assert cluster_directory(c) == "src/auth"

    def test_root_file_means_root(self):
        assert cluster_directory(_cluster("c1", ["README.md", "src/a.py"])) == ""

    def test_empty_cluster(self):
        assert cluster_directory(_cluster("c1", [])) == ""


class TestInferDependencies:
    def test_child_directory_depends_on_parent(self):
        parent = _cluster("cluster-1", ["src/auth/a.py"])
        child = _cluster("cluster-2", ["src/auth/providers/b.py"])
        sibling = _cluster("cluster-3", ["src/billing/c.py"])

        result = infer_dependencies([child, parent, sibling])
        by_id = {c.id: c for c in result}

        assert by_id["cluster-2"].depends_on == ["cluster-1"]
        assert by_id["cluster-1"].depends_on == []
        assert by_id["cluster-3"].depends_on == []

    def test_root_cluster_is_nobody_s_ancestor(self):
        root = _cluster("cluster-1", ["README.md"])
        nested = _cluster("cluster-2", ["src/a.py"])
        assert directory_nesting_edges([root, nested]) == {"cluster-1": set(), "cluster-2": set()}

    def test_prefix_is_not_ancestry(self):
        a = _cluster("cluster-1", ["src/auth/a.py"])
        b = _cluster("cluster-2", ["src/authz/b.py"])
        assert directory_nesting_edges([a, b])["cluster-2"] == set()

    def test_input_is_not_modified(self):
        parent = _cluster("cluster-1", ["src/a.py"])
        child = _cluster("cluster-2", ["src/x/b.py"])
        infer_dependencies([parent, child])
        assert child.depends_on == []

    def test_custom_edge_inference(self):
        a = _cluster("cluster-1", ["a/x.py"])
        b = _cluster("cluster-2", ["b/y.py"])
        result = infer_dependencies([a, b], infer_edges=lambda clusters: {"cluster-1": {"cluster-2"}})
        assert result[0].depends_on == ["cluster-2"]
        assert result[1].depends_on == []


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


class TestTopologicalSort:
    def test_dependencies_come_first(self):
        a = _cluster("a", ["a.py"], depends_on=["b"])
        b = _cluster("b", ["b.py"], depends_on=["c"])
        c = _cluster("c", ["c.py"])

        result = topological_sort([a, b, c])

        assert [x.id for x in result] == ["c", "b", "a"]
        assert [x.priority for x in result] == [1, 2, 3]

    def test_cycle_keeps_every_cluster_once(self):
        a = _cluster("a", ["a.py"], depends_on=["b"])
        b = _cluster("b", ["b.py"], depends_on=["a"])
        c = _cluster("c", ["c.py"], depends_on=["c"])

        result = topological_sort([a, b, c])

        assert sorted(x.id for x in result) == ["a", "b", "c"]
        assert len(result) == 3

    def test_unknown_dependency_ignored(self):
        result = topological_sort([_cluster("a", ["a.py"], depends_on=["missing"])])
        assert [x.id for x in result] == ["a"]

    def test_ids_and_depends_on_preserved(self):
        a = _cluster("cluster-1", ["a.py"], depends_on=["cluster-2"])
        b = _cluster("cluster-2", ["b.py"])

        result = topological_sort([a, b])

        assert result[1].id == "cluster-1"
        assert result[1].depends_on == ["cluster-2"]
        assert a.priority == 1  # input untouched

    def test_renumber_matches_position_and_remaps_dependencies(self):
        ordered = order_clusters(
            [
                _cluster("cluster-1", ["src/auth/providers/x.py"]),
                _cluster("cluster-2", ["src/auth/y.py"]),
            ]
        )

        result = renumber_clusters(ordered)

        assert [c.id for c in result] == ["cluster-1", "cluster-2"]
        assert [c.priority for c in result] == [1, 2]
        assert result[0].files[0].path == "src/auth/y.py"
        assert result[1].depends_on == ["cluster-1"]
        assert ordered[0].id == "cluster-2"  # input untouched

    def test_renumber_drops_unknown_dependencies(self):
        result = renumber_clusters([_cluster("c9", ["a.py"], depends_on=["gone"])])
        assert result[0].id == "cluster-1"
        assert result[0].depends_on == []

    def test_order_clusters_overrides_path_priority(self):
        child = _cluster("cluster-1", ["src/auth/providers/x.py"], priority=1)
        parent = _cluster("cluster-2", ["src/auth/y.py"], priority=2)

        result = order_clusters([child, parent])

        assert [c.id for c in result] == ["cluster-2", "cluster-1"]
        assert [c.priority for c in result] == [1, 2]


# ---------------------------------------------------------------------------
# File-level helpers
# ---------------------------------------------------------------------------


class TestAnalyzeImports:
    def test_nested_file_depends_on_same_and_ancestor_directories(self):
        files = [
            ClusterFile(path="src/auth/a.py", change_type="modified"),
            ClusterFile(path="src/auth/b.py", change_type="modified"),
            ClusterFile(path="src/auth/providers/c.py", change_type="modified"),
            ClusterFile(path="top.py", change_type="modified"),
        ]
        graph = analyze_imports(files)

        assert graph.nodes == [f.path for f in files]
        assert graph.edges["src/auth/a.py"] == {"src/auth/b.py"}
        assert graph.edges["src/auth/providers/c.py"] == {"src/auth/a.py", "src/auth/b.py"}
        assert graph.edges["top.py"] == set()

    def test_shallow_files_have_no_edges(self):
        files = [ClusterFile(path="src/a.py", change_type="added"), ClusterFile(path="src/b.py", change_type="added")]
        assert analyze_imports(files).edges == {"src/a.py": set(), "src/b.py": set()}


class TestTestPairs:
    def test_is_test_file(self):
        assert is_test_file("src/auth.test.ts")
        assert is_test_file("src/auth.spec.js")
        assert is_test_file("pkg/auth_test.go")
        assert is_test_file("tests/test_auth.py")
        assert is_test_file("src/AuthTest.java")
        assert not is_test_file("src/auth.py")

    def test_source_with_matching_test_is_marked_once(self):
        source = ClusterFile(path="src/auth.py", change_type="modified")
        test = ClusterFile(path="src/test_auth.py", change_type="added", review_notes="[New file]")
        other = ClusterFile(path="src/billing.py", change_type="modified")
        groups = {"src": [source, test, other]}

        detect_test_pairs(groups)
        detect_test_pairs(groups)

        assert source.review_notes == HAS_TESTS_NOTE
        assert other.review_notes is None
        assert test.review_notes == "[New file]"

    def test_marker_appended_to_existing_notes(self):
        source = ClusterFile(path="lib/parser.ts", change_type="added", review_notes="[New file]")
        test = ClusterFile(path="lib/parser.test.ts", change_type="added")
        detect_test_pairs({"lib": [source, test]})
        assert source.review_notes == "[New file] [Has tests]"


class TestBuildHeuristicClusters:
    def test_groups_pairs_and_orders(self):
        files = [
            ClusterFile(path="src/auth/providers/github.py", change_type="added"),
            ClusterFile(path="src/auth/session.py", change_type="modified"),
            ClusterFile(path="src/auth/test_session.py", change_type="modified"),
            ClusterFile(path="README.md", change_type="modified"),
        ]
        clusters = build_heuristic_clusters(files)

        by_name = {c.name: c for c in clusters}
        assert set(by_name) == {"Root Files", "Auth", "Providers"}
        assert by_name["Providers"].depends_on == [by_name["Auth"].id]
        assert by_name["Auth"].description.startswith("Changes in src/auth: ")

        positions = [c.id for c in clusters]
        assert positions.index(by_name["Auth"].id) < positions.index(by_name["Providers"].id)
        assert [c.priority for c in clusters] == [1, 2, 3]

        session_file = next(f for f in by_name["Auth"].files if f.path == "src/auth/session.py")
        assert session_file.review_notes == HAS_TESTS_NOTE

    def test_empty(self):
        assert build_heuristic_clusters([]) == []
