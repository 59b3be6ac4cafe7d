"""
Carrots: Basic Usage Example

Demonstrates:
- Building commitments in code
- Calculating liabilities
- Loading a snapshot file
- Detecting changes between two calculations
- What a non-converging commitment graph looks like
"""

from pathlib import Path

from carrots import (
    Commitment,
    EngineConfig,
    LiabilityEngine,
    NonConvergenceError,
    Promise,
    SingleUserCondition,
    detect_changes,
    format_changes,
    load_snapshot,
)


def main():
    """Basic Carrots usage."""

    print("=" * 60)
    print("Carrots: Basic Usage Example")
    print("=" * 60)
    print()

    # 1️⃣ Commitments in code
    print("1️⃣ Alice works 5 hours if Bob works 2; Bob works 3 hours.")
    commitments = [
        Commitment(
            id="c-alice", creator_id="alice",
            conditions=(SingleUserCondition("bob", "work", "hours", 2),),
            promises=(Promise("work", "hours", base_amount=5),),
        ),
        Commitment(
            id="c-bob", creator_id="bob",
            promises=(Promise("work", "hours", base_amount=3),),
        ),
    ]
    engine = LiabilityEngine()
    before = engine.calculate(commitments, ["alice", "bob"], group_id="demo")
    for record in before.liabilities:
        print(f"  {record.user_id}: {record.action} {record.amount:g} {record.unit}")
    print(f"✅ Converged after {before.iterations} iteration(s)")
    print()

    # 2️⃣ Bob scales back
    print("2️⃣ Bob now only promises 1 hour...")
    commitments[1] = Commitment(
        id="c-bob", creator_id="bob",
        promises=(Promise("work", "hours", base_amount=1),),
    )
    after = engine.calculate(commitments, ["alice", "bob"], group_id="demo")
    print(format_changes(detect_changes(before.liabilities, after.liabilities)))
    print()

    # 3️⃣ From a snapshot file
    path = Path(__file__).parent / "household.yaml"
    print(f"3️⃣ Loading {path.name}...")
    group = load_snapshot(path)
    result = engine.calculate_group(group)
    for record in result.liabilities:
        who = record.username or record.user_id
        print(f"  {who}: {record.action} {record.amount:g} {record.unit}")
    print(f"  Fingerprint: {result.fingerprint[:16]}...")
    print()

    # 4️⃣ A graph with no fixed point
    print("4️⃣ Alice needs Bob's 1500; Bob only matches what Alice did...")
    flip_flop = [
        Commitment(
            id="c-alice", creator_id="alice",
            conditions=(SingleUserCondition("bob", "b", "u", 1500),),
            promises=(Promise("a", "u", base_amount=2000),),
        ),
        Commitment(
            id="c-bob", creator_id="bob",
            promises=(Promise(
                "b", "u", proportional_amount=1,
                reference_action="a", reference_user_id="alice",
            ),),
        ),
    ]
    try:
        engine.calculate(flip_flop, ["alice", "bob"])
    except NonConvergenceError as e:
        print(f"  ❌ {e}")

    monotone = LiabilityEngine(EngineConfig(strategy="monotone"))
    settled = monotone.calculate(flip_flop, ["alice", "bob"])
    print(f"  ✅ Monotone strategy settles after {settled.iterations} iteration(s) "
          f"with {len(settled.liabilities)} liabilities")
    print()

    print("=" * 60)
    print("✅ Basic usage complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
