"""Tests for the taxonomy arena, ancestry chains and row matching."""

import pytest
from pydantic import ValidationError

from risk_rollup.matcher import deepest_level, matches, matching_rows, rows_for_node
from risk_rollup.schema import AncestryChain, AssessmentRow, Domain, TaxonomyNode
from risk_rollup.taxonomy import TaxonomyArena, TaxonomyCycleError, TaxonomyDepthError


def node(node_id: str, *children: TaxonomyNode) -> TaxonomyNode:
    return TaxonomyNode(id=node_id, name=f"Node {node_id}", children=list(children))


@pytest.fixture
def risk_tree() -> list[TaxonomyNode]:
    return [
        node("R1", node("R1.1"), node("R1.2")),
        node("R2", node("R2.1", node("R2.1.1"))),
        node("R3"),
    ]


class TestTaxonomyArena:
    """Tests for building the arena."""

    def test_depths_and_parents(self, risk_tree):
        arena = TaxonomyArena.build(risk_tree, Domain.RISK)

        assert len(arena) == 7
        assert arena.find("R1").depth == 1
        assert arena.find("R2.1.1").depth == 3
        assert arena.nodes[arena.find("R2.1.1").parent].id == "R2.1"
        assert arena.find("R3").parent is None

    def test_hierarchical_ids(self, risk_tree):
        arena = TaxonomyArena.build(risk_tree, Domain.RISK)

        assert arena.find("R1").hierarchical_id == "1"
        assert arena.find("R1.2").hierarchical_id == "1.2"
        assert arena.find("R2.1.1").hierarchical_id == "2.1.1"
        assert arena.find("R3").hierarchical_id == "3"

    def test_leaves_in_tree_order(self, risk_tree):
        arena = TaxonomyArena.build(risk_tree, Domain.RISK)
        assert [leaf.id for leaf in arena.leaves()] == ["R1.1", "R1.2", "R2.1.1", "R3"]

    def test_post_order_visits_children_first(self, risk_tree):
        arena = TaxonomyArena.build(risk_tree, Domain.RISK)
        order = [n.id for n in arena.post_order()]

        assert order.index("R2.1.1") < order.index("R2.1") < order.index("R2")
        assert order.index("R1.1") < order.index("R1")

    def test_ancestry_of(self, risk_tree):
        arena = TaxonomyArena.build(risk_tree, Domain.RISK)

        assert arena.ancestry_of("R2.1.1") == ["R2", "R2.1", "R2.1.1"]
        assert arena.ancestry_of("R3") == ["R3"]
        assert arena.ancestry_of("missing") == []

    def test_five_levels_accepted(self):
        tree = [node("1", node("2", node("3", node("4", node("5")))))]
        arena = TaxonomyArena.build(tree, Domain.PROCESS)
        assert arena.find("5").depth == 5

    def test_sixth_level_rejected(self):
        tree = [node("1", node("2", node("3", node("4", node("5", node("6"))))))]

        with pytest.raises(TaxonomyDepthError) as exc_info:
            TaxonomyArena.build(tree, Domain.RISK)
        assert exc_info.value.node_id == "6"
        assert exc_info.value.depth == 6

    def test_shared_node_rejected(self):
        shared = node("shared")
        tree = [node("A", shared), node("B", shared)]

        with pytest.raises(TaxonomyCycleError):
            TaxonomyArena.build(tree, Domain.RISK)

    def test_cyclic_node_rejected(self):
        looping = node("loop")
        looping.children.append(looping)

        with pytest.raises(TaxonomyCycleError):
            TaxonomyArena.build([looping], Domain.RISK)

    def test_duplicate_id_rejected(self):
        tree = [node("A", node("X")), node("B", node("X"))]

        with pytest.raises(TaxonomyCycleError):
            TaxonomyArena.build(tree, Domain.RISK)

    def test_empty_tree(self):
        arena = TaxonomyArena.build([], Domain.RISK)
        assert len(arena) == 0
        assert arena.leaves() == []


class TestAncestryChain:
    """Tests for the fixed five-slot chain."""

    def test_list_input_padded(self):
        chain = AncestryChain.model_validate(["R1", "R1.1"])

        assert chain.levels == ("R1", "R1.1", None, None, None)
        assert chain.deepest_level == 2
        assert chain.leaf_id == "R1.1"
        assert chain.at_level(1) == "R1"
        assert chain.at_level(3) is None

    def test_empty_chain(self):
        chain = AncestryChain()
        assert chain.deepest_level == 0
        assert chain.leaf_id is None

    def test_empty_strings_treated_as_unset(self):
        chain = AncestryChain.model_validate(["R1", "", ""])
        assert chain.deepest_level == 1

    def test_too_many_levels_rejected(self):
        with pytest.raises(ValidationError):
            AncestryChain.model_validate(["1", "2", "3", "4", "5", "6"])

    def test_gap_rejected(self):
        with pytest.raises(ValidationError):
            AncestryChain.model_validate(["1", None, "3"])


class TestRowMatcher:
    """A row matches its own node and every ancestor."""

    @pytest.fixture
    def row(self) -> AssessmentRow:
        return AssessmentRow(id="row-1", risk=["R2", "R2.1", "R2.1.1"], process=["P1"])

    def test_matches_own_node_and_ancestors(self, row):
        assert matches(row, Domain.RISK, "R2.1.1")
        assert matches(row, Domain.RISK, "R2.1")
        assert matches(row, Domain.RISK, "R2")

    def test_does_not_match_other_nodes(self, row):
        assert not matches(row, Domain.RISK, "R1")
        assert not matches(row, Domain.RISK, "P1")

    def test_domains_are_independent(self, row):
        assert matches(row, Domain.PROCESS, "P1")
        assert not matches(row, Domain.PROCESS, "R2")

    def test_deepest_level(self, row):
        assert deepest_level(row, Domain.RISK) == 3
        assert deepest_level(row, Domain.PROCESS) == 1

    def test_rows_for_node_and_matching_rows(self, row):
        other = AssessmentRow(id="row-2", risk=["R2"], process=["P2"])

        assert rows_for_node([row, other], Domain.RISK, "R2") == [row, other]
        assert matching_rows([row, other], "R2", "P1") == [row]
        assert matching_rows([row, other], "R1", "P1") == []
