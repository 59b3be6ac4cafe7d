"""
tests/test_liability_invariants.py

Liability Engine Invariant Test Suite

These tests do not test features. They test LAWS of the fixed-point
engine: if any test here fails, the engine is broken — not the test.

Invariants tested:

  BASICS
    LIA-01  No commitments ⇒ empty result
    LIA-02  Unconditional promise is always honored
    LIA-03  Amounts are positive and backed by at least one commitment

  CONDITIONS
    LIA-04  Single-user condition gates the promise (unmet ⇒ 0)
    LIA-05  Single-user condition met by another commitment ⇒ exact promise
    LIA-06  Aggregate condition excludes the creator's own liability
    LIA-07  Aggregate condition counts every other member
    LIA-08  Conditions are a conjunction
    LIA-09  Same action under another unit is a different slot

  PROMISES
    LIA-10  Proportional promise with threshold and cap
    LIA-11  Cap limits the proportional contribution only
    LIA-12  Aggregate reference sums every member, creator included

  TIES
    LIA-13  Tied maximal commitments are all effective
    LIA-14  A strictly larger promise replaces the effective set

  DETERMINISM
    LIA-15  Identical input ⇒ identical amounts, ids, iterations, fingerprint
    LIA-16  Output grouped by member order, then action, then unit

  CONVERGENCE
    LIA-17  Oscillating graph raises NonConvergenceError
    LIA-18  Diverging graph raises NonConvergenceError
    LIA-19  Non-convergence never yields partial liabilities
    LIA-20  Monotone strategy settles the oscillating graph
"""

import pytest

from carrots import (
    AggregateCondition,
    Commitment,
    EngineConfig,
    LiabilityEngine,
    Member,
    NonConvergenceError,
    Promise,
    SingleUserCondition,
    calculate_liabilities,
)
from carrots.core.modes import STRATEGY_MONOTONE
from carrots.engine.fixpoint import EngineState


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def promise(action="work", amount=0.0, unit="hours", **kwargs) -> Promise:
    return Promise(action=action, unit=unit, base_amount=amount, **kwargs)


def commit(cid, creator, promises, conditions=()) -> Commitment:
    return Commitment(id=cid, creator_id=creator, conditions=conditions, promises=promises)


def by_user(records, action="work", unit="hours"):
    """{user_id: amount} for one slot."""
    return {
        r.user_id: r.amount
        for r in records
        if r.action == action and r.unit == unit
    }


def oscillating_graph():
    """
    Alice does 2000 if Bob does at least 1500.
    Bob does as much as Alice (uncapped, so his seed is 1000).

    Recompute alternates (0, 2000) ↔ (2000, 0) forever.
    """
    return [
        commit(
            "c-alice", "alice",
            [promise("a", 2000, unit="u")],
            [SingleUserCondition("bob", "b", "u", 1500)],
        ),
        commit(
            "c-bob", "bob",
            [Promise(
                action="b", unit="u",
                proportional_amount=1.0,
                reference_action="a",
                reference_user_id="alice",
            )],
        ),
    ]


@pytest.fixture
def engine():
    return LiabilityEngine()


@pytest.fixture
def members():
    return ["alice", "bob", "carol"]


# ─────────────────────────────────────────────────────────────
# BASICS
# ─────────────────────────────────────────────────────────────

class TestBasics:

    def test_LIA01_no_commitments_empty_result(self, members):
        """LIA-01: calculate([], members) == []"""
        assert calculate_liabilities([], members) == []

    def test_LIA01_empty_result_needs_no_iterations(self, engine, members):
        result = engine.calculate([], members, group_id="g")
        assert result.liabilities == []
        assert result.iterations == 0
        assert result.state == EngineState.CONVERGED

    def test_LIA02_unconditional_promise_always_honored(self, members):
        """LIA-02: An unconditional base of 5 always yields at least 5."""
        commitments = [
            commit("c1", "alice", [promise(amount=5)]),
            # A bigger promise whose condition can never hold
            commit(
                "c2", "alice", [promise(amount=50)],
                [SingleUserCondition("bob", "work", "hours", 100)],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        amounts = by_user(records)
        assert amounts["alice"] >= 5
        assert amounts["alice"] == 5
        # c2 seeded the slot at 50 but never held; only c1 backs the result
        assert records[0].effective_commitment_ids == ("c1",)

    def test_LIA03_amounts_positive_and_backed(self, members):
        """LIA-03: Every record has amount > 0 and a non-empty id set."""
        commitments = [
            commit("c1", "alice", [promise(amount=10)]),
            commit(
                "c2", "bob", [promise(amount=3)],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
            commit(
                "c3", "carol", [promise(amount=7)],
                [SingleUserCondition("bob", "work", "hours", 50)],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        assert records, "Expected at least one liability"
        for record in records:
            assert record.amount > 0
            assert record.effective_commitment_ids


# ─────────────────────────────────────────────────────────────
# CONDITIONS
# ─────────────────────────────────────────────────────────────

class TestConditions:

    def test_LIA04_single_user_condition_unmet(self, members):
        """LIA-04: Bob's promise is gated on Alice, who promises nothing."""
        commitments = [
            commit(
                "c-bob", "bob", [promise(amount=3)],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
        ]
        assert calculate_liabilities(commitments, members) == []

    def test_LIA05_single_user_condition_met(self, engine, members):
        """LIA-05: Alice=10 unconditionally, Bob=3 if Alice >= 5 ⇒ Alice 10, Bob 3."""
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit(
                "c-bob", "bob", [promise(amount=3)],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
        ]
        result = engine.calculate(commitments, members)
        assert by_user(result.liabilities) == {"alice": 10, "bob": 3}
        assert result.iterations == 1

        bob = [r for r in result.liabilities if r.user_id == "bob"][0]
        assert bob.effective_commitment_ids == ("c-bob",)

    def test_LIA05_condition_is_inclusive(self, members):
        """min_amount is a >= threshold, not >."""
        commitments = [
            commit("c-alice", "alice", [promise(amount=5)]),
            commit(
                "c-bob", "bob", [promise(amount=3)],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
        ]
        assert by_user(calculate_liabilities(commitments, members)) == {"alice": 5, "bob": 3}

    def test_LIA06_aggregate_excludes_creator(self, members):
        """
        LIA-06: Alice does 10 herself; others only do 4.
        Her "others' combined work >= 10" condition must fail.
        """
        commitments = [
            commit("c-alice-work", "alice", [promise(amount=10)]),
            commit("c-bob", "bob", [promise(amount=4)]),
            commit(
                "c-alice-clean", "alice", [promise("cleaning", 2)],
                [AggregateCondition("work", "hours", 10)],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        assert by_user(records, action="cleaning") == {}
        assert by_user(records) == {"alice": 10, "bob": 4}

    def test_LIA07_aggregate_counts_every_other_member(self, members):
        """LIA-07: Bob 4 + Carol 6 = 10 satisfies Alice's aggregate condition."""
        commitments = [
            commit("c-bob", "bob", [promise(amount=4)]),
            commit("c-carol", "carol", [promise(amount=6)]),
            commit(
                "c-alice", "alice", [promise("cleaning", 2)],
                [AggregateCondition("work", "hours", 10)],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        assert by_user(records, action="cleaning") == {"alice": 2}

    def test_LIA08_conditions_are_a_conjunction(self, members):
        """LIA-08: One failing condition is enough to withhold the promise."""
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit(
                "c-carol", "carol", [promise(amount=1)],
                [
                    SingleUserCondition("alice", "work", "hours", 5),
                    SingleUserCondition("bob", "work", "hours", 1),
                ],
            ),
        ]
        assert by_user(calculate_liabilities(commitments, members)) == {"alice": 10}

        commitments.append(commit("c-bob", "bob", [promise(amount=1)]))
        assert by_user(calculate_liabilities(commitments, members)) == {
            "alice": 10, "bob": 1, "carol": 1,
        }

    def test_LIA09_units_are_distinct_slots(self, members):
        """LIA-09: Alice's hours do not satisfy a condition on minutes."""
        commitments = [
            commit("c-alice", "alice", [promise(amount=10, unit="hours")]),
            commit(
                "c-bob", "bob", [promise(amount=3, unit="hours")],
                [SingleUserCondition("alice", "work", "minutes", 5)],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        assert [(r.user_id, r.unit) for r in records] == [("alice", "hours")]


# ─────────────────────────────────────────────────────────────
# PROMISES
# ─────────────────────────────────────────────────────────────

class TestPromises:

    def test_LIA10_proportional_threshold_and_cap(self, engine, members):
        """LIA-10: Bob = 2 + min(5, 0.5 × (10 − 5)) = 4.5"""
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit(
                "c-bob", "bob",
                [Promise(
                    action="work", unit="hours",
                    base_amount=2,
                    proportional_amount=0.5,
                    reference_action="work",
                    reference_user_id="alice",
                    threshold_amount=5,
                    max_amount=5,
                )],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
        ]
        result = engine.calculate(commitments, members)
        amounts = by_user(result.liabilities)
        assert amounts["alice"] == 10
        assert amounts["bob"] == pytest.approx(4.5)
        assert result.iterations == 2

    def test_LIA11_cap_applies_to_proportional_part_only(self, members):
        """LIA-11: base 2 + min(1, 1 × 10) = 3, not min(1, 12)."""
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit(
                "c-bob", "bob",
                [Promise(
                    action="work", unit="hours",
                    base_amount=2,
                    proportional_amount=1,
                    reference_action="work",
                    reference_user_id="alice",
                    max_amount=1,
                )],
            ),
        ]
        assert by_user(calculate_liabilities(commitments, members))["bob"] == pytest.approx(3)

    def test_LIA11_reference_below_threshold_contributes_nothing(self, members):
        commitments = [
            commit("c-alice", "alice", [promise(amount=4)]),
            commit(
                "c-bob", "bob",
                [Promise(
                    action="work", unit="hours",
                    base_amount=1,
                    proportional_amount=2,
                    reference_action="work",
                    reference_user_id="alice",
                    threshold_amount=5,
                )],
            ),
        ]
        assert by_user(calculate_liabilities(commitments, members))["bob"] == pytest.approx(1)

    def test_LIA12_aggregate_reference_includes_creator(self, members):
        """
        LIA-12: Bob matches half of everyone's work, his own included.
        b = 0.5 × (10 + 6 + b)  ⇒  b = 16
        """
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit("c-carol", "carol", [promise(amount=6)]),
            commit(
                "c-bob", "bob",
                [Promise(
                    action="work", unit="hours",
                    proportional_amount=0.5,
                    reference_action="work",
                )],
            ),
        ]
        result = LiabilityEngine().calculate(commitments, members)
        assert by_user(result.liabilities)["bob"] == pytest.approx(16, abs=1e-2)
        assert result.iterations > 1

    def test_LIA12_reference_in_other_action(self, members):
        """Cleaning matched against everyone's work, same unit."""
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit("c-carol", "carol", [promise(amount=6)]),
            commit(
                "c-bob", "bob",
                [Promise(
                    action="cleaning", unit="hours",
                    proportional_amount=0.5,
                    reference_action="work",
                    max_amount=100,
                )],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        assert by_user(records, action="cleaning") == {"bob": pytest.approx(8)}


# ─────────────────────────────────────────────────────────────
# TIES
# ─────────────────────────────────────────────────────────────

class TestTies:

    def test_LIA13_tied_commitments_all_effective(self, members):
        """LIA-13: Two commitments both yielding the max are both listed."""
        commitments = [
            commit("c-bob", "bob", [promise(amount=1)]),
            commit("c1", "alice", [promise(amount=5)]),
            commit(
                "c2", "alice", [promise(amount=5)],
                [SingleUserCondition("bob", "work", "hours", 1)],
            ),
        ]
        records = calculate_liabilities(commitments, members)
        alice = [r for r in records if r.user_id == "alice"][0]
        assert alice.amount == 5
        assert alice.effective_commitment_ids == ("c1", "c2")

    def test_LIA14_larger_promise_replaces_effective_set(self, members):
        """LIA-14: max wins; smaller commitments are not effective."""
        commitments = [
            commit("c1", "alice", [promise(amount=5)]),
            commit("c2", "alice", [promise(amount=5)]),
            commit("c3", "alice", [promise(amount=8)]),
        ]
        alice = calculate_liabilities(commitments, members)[0]
        assert alice.amount == 8
        assert alice.effective_commitment_ids == ("c3",)

    def test_promises_are_maximized_not_summed(self, members):
        """Two promises of one commitment on one slot take the max."""
        commitments = [
            commit("c1", "alice", [promise(amount=3), promise(amount=4)]),
        ]
        alice = calculate_liabilities(commitments, members)[0]
        assert alice.amount == 4
        assert alice.effective_commitment_ids == ("c1",)


# ─────────────────────────────────────────────────────────────
# DETERMINISM
# ─────────────────────────────────────────────────────────────

class TestDeterminism:

    def _commitments(self):
        return [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit(
                "c-bob", "bob",
                [Promise(
                    action="work", unit="hours",
                    base_amount=2,
                    proportional_amount=0.5,
                    reference_action="work",
                    reference_user_id="alice",
                    threshold_amount=5,
                    max_amount=5,
                )],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
            commit("c-carol", "carol", [promise(amount=5), promise("cleaning", 5)]),
            commit("c-carol-2", "carol", [promise(amount=5)]),
        ]

    def test_LIA15_idempotent(self, members):
        """LIA-15: Two runs on identical input are bit-identical."""
        first  = LiabilityEngine().calculate(self._commitments(), members)
        second = LiabilityEngine().calculate(self._commitments(), members)

        assert first.to_dict() == second.to_dict()
        assert first.iterations == second.iterations
        assert first.fingerprint == second.fingerprint
        assert [r.amount for r in first.liabilities] == [r.amount for r in second.liabilities]

    def test_LIA15_same_engine_reused(self, engine, members):
        first  = engine.calculate(self._commitments(), members)
        second = engine.calculate(self._commitments(), members)
        assert first == second

    def test_LIA16_output_order(self, members):
        """LIA-16: carol before alice when carol is listed first."""
        records = calculate_liabilities(self._commitments(), ["carol", "bob", "alice"])
        assert [(r.user_id, r.action) for r in records] == [
            ("carol", "cleaning"),
            ("carol", "work"),
            ("bob", "work"),
            ("alice", "work"),
        ]

    def test_usernames_are_attached(self):
        members = [Member("alice", "Alice"), Member("bob")]
        records = calculate_liabilities(
            [commit("c1", "alice", [promise(amount=1)]), commit("c2", "bob", [promise(amount=1)])],
            members,
        )
        assert [(r.user_id, r.username) for r in records] == [("alice", "Alice"), ("bob", None)]


# ─────────────────────────────────────────────────────────────
# CONVERGENCE
# ─────────────────────────────────────────────────────────────

class TestConvergence:

    def test_LIA17_oscillation_detected(self, engine):
        """LIA-17: The flip-flopping graph must not produce a number."""
        with pytest.raises(NonConvergenceError) as exc_info:
            engine.calculate(oscillating_graph(), ["alice", "bob"], group_id="g-osc")

        error = exc_info.value
        assert error.iterations == 100
        assert error.max_delta == pytest.approx(2000)
        assert error.group_id == "g-osc"

    def test_LIA17_iteration_bound_is_configurable(self):
        engine = LiabilityEngine(EngineConfig(max_iterations=7))
        with pytest.raises(NonConvergenceError) as exc_info:
            engine.calculate(oscillating_graph(), ["alice", "bob"])
        assert exc_info.value.iterations == 7

    def test_LIA18_divergence_detected(self, engine):
        """LIA-18: Each member promises double the other, uncapped."""
        commitments = [
            commit("c-a", "alice", [Promise(
                action="work", unit="hours", base_amount=1,
                proportional_amount=2, reference_action="work", reference_user_id="bob",
            )]),
            commit("c-b", "bob", [Promise(
                action="work", unit="hours", base_amount=1,
                proportional_amount=2, reference_action="work", reference_user_id="alice",
            )]),
        ]
        with pytest.raises(NonConvergenceError):
            engine.calculate(commitments, ["alice", "bob"])

    def test_LIA19_no_partial_result(self):
        """LIA-19: calculate_liabilities raises instead of returning anything."""
        result = None
        with pytest.raises(NonConvergenceError):
            result = calculate_liabilities(oscillating_graph(), ["alice", "bob"])
        assert result is None

    def test_LIA20_monotone_strategy_settles(self):
        """LIA-20: Decreasing iteration cannot oscillate."""
        engine = LiabilityEngine(EngineConfig(strategy=STRATEGY_MONOTONE))
        result = engine.calculate(oscillating_graph(), ["alice", "bob"])
        assert result.liabilities == []
        assert result.strategy == STRATEGY_MONOTONE
        assert result.iterations == 3

    def test_monotone_agrees_on_simple_graph(self, members):
        commitments = [
            commit("c-alice", "alice", [promise(amount=10)]),
            commit(
                "c-bob", "bob", [promise(amount=3)],
                [SingleUserCondition("alice", "work", "hours", 5)],
            ),
        ]
        recompute = LiabilityEngine().calculate(commitments, members)
        monotone  = LiabilityEngine(EngineConfig(strategy=STRATEGY_MONOTONE)).calculate(
            commitments, members,
        )
        assert recompute.fingerprint == monotone.fingerprint
