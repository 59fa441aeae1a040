"""Tests for requires normalization and the per-group topological sort."""

import itertools

import pytest

from apogee.core.deps import (
    DepNode,
    normalize_require_key,
    normalize_requires_list,
    requires_satisfied,
    topo_sort_group,
)
from apogee.core.errors import ConfigurationError, DependencyCycleError


def node(name, priority=1000, requires=(), group="apps"):
    return DepNode(key=f"{group}.{name}", name=name, priority=priority, requires=list(requires))


def keys(nodes):
    return [n.key for n in nodes]


# =============================================================================
# Requires normalization
# =============================================================================

class TestNormalizeRequires:
    """Tests for requires key normalization."""

    def test_plain_key(self):
        """group.name passes through."""
        assert normalize_require_key("apps.uv") == "apps.uv"

    def test_modules_prefix_stripped(self):
        """A leading modules. is dropped."""
        assert normalize_require_key("modules.cloud.dropbox") == "cloud.dropbox"

    def test_group_lowercased(self):
        """Only the group part is lowercased."""
        assert normalize_require_key(" Apps.MyTool ") == "apps.MyTool"

    def test_bad_shape_raises(self):
        """Anything but two dotted parts is rejected."""
        for raw in ("uv", "apps.uv.extra", "", "apps."):
            with pytest.raises(ConfigurationError):
                normalize_require_key(raw)

    def test_list_error_names_owner(self):
        """Errors are prefixed with the owning module and field."""
        with pytest.raises(ConfigurationError) as exc:
            normalize_requires_list(["apps.ok", "broken"], owner="apps.zoxide")
        assert "apps.zoxide: requires:" in str(exc.value)

    def test_requires_satisfied(self):
        """Every key must be active."""
        assert requires_satisfied({"apps.a", "cloud.b"}, ["apps.a"])
        assert not requires_satisfied({"apps.a"}, ["apps.a", "cloud.b"])
        assert requires_satisfied(set(), [])


# =============================================================================
# Topological sort
# =============================================================================

class TestTopoSort:
    """Tests for deterministic Kahn ordering."""

    def test_priority_then_name(self):
        """Without edges, order is priority then name."""
        nodes = [node("b", 5), node("a", 5), node("c", 1)]
        assert keys(topo_sort_group(nodes, "apps")) == ["apps.c", "apps.a", "apps.b"]

    def test_dependency_beats_priority(self):
        """A required module comes first even with a worse priority."""
        nodes = [node("a", priority=10), node("b", priority=5, requires=["apps.a"])]
        assert keys(topo_sort_group(nodes, "apps")) == ["apps.a", "apps.b"]

    def test_order_independent_of_input(self):
        """Every input permutation yields the same order."""
        nodes = [
            node("a", 3),
            node("b", 1, ["apps.a"]),
            node("c", 2),
            node("d", 1, ["apps.b", "apps.c"]),
            node("e", 2),
        ]
        expected = keys(topo_sort_group(nodes, "apps"))
        assert len(expected) == len(nodes)
        for perm in itertools.permutations(nodes):
            assert keys(topo_sort_group(list(perm), "apps")) == expected

    def test_edges_respected(self):
        """Every same-group edge points forward."""
        nodes = [
            node("x", 1, ["apps.y"]),
            node("y", 1, ["apps.z"]),
            node("z", 9),
            node("w", 0),
        ]
        order = keys(topo_sort_group(nodes, "apps"))
        for n in nodes:
            for dep in n.requires:
                assert order.index(dep) < order.index(n.key)

    def test_cross_group_requires_ignored(self):
        """Requires on other groups create no edges."""
        nodes = [node("a", requires=["cloud.dropbox"])]
        assert keys(topo_sort_group(nodes, "apps")) == ["apps.a"]

    def test_unknown_same_group_raises(self):
        """An unknown same-group module names both sides."""
        with pytest.raises(ConfigurationError) as exc:
            topo_sort_group([node("a", requires=["apps.ghost"])], "apps")
        assert "apps.a" in str(exc.value)
        assert "apps.ghost" in str(exc.value)

    def test_cycle_reports_every_residual_node(self):
        """Nodes on or behind a cycle are all reported, sorted."""
        nodes = [
            node("a", requires=["apps.b"]),
            node("b", requires=["apps.a"]),
            node("c", requires=["apps.b"]),
            node("free"),
        ]
        with pytest.raises(DependencyCycleError) as exc:
            topo_sort_group(nodes, "apps")
        assert exc.value.group == "apps"
        assert exc.value.nodes == ["apps.a", "apps.b", "apps.c"]

    def test_self_cycle(self):
        """A module requiring itself is a cycle."""
        with pytest.raises(DependencyCycleError):
            topo_sort_group([node("a", requires=["apps.a"])], "apps")

    def test_empty(self):
        """No nodes, no order."""
        assert topo_sort_group([], "apps") == []
