"""
Concurrent consumption of the same lot.

Two writers plan the full remaining quantity of one lot from the same
snapshot, then commit at the same moment.  Exactly one commit may succeed;
the other must see the first's effect on re-read and fail with
StaleAllocationError.  The lot never goes negative.

Disjoint lots must both succeed.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier

from inventory_kernel.domain.dtos import Destination, MovementMetadata, MovementType
from inventory_kernel.exceptions import StaleAllocationError

WORKERS = 2


def _commit_after_barrier(service, plan, barrier, batch_id):
    barrier.wait(timeout=10)
    try:
        service.commit_consumption(
            plan, Destination(batch_id=batch_id), MovementMetadata(performed_by=batch_id)
        )
        return "ok"
    except StaleAllocationError:
        return "stale"


class TestSameLotRace:
    def test_exactly_one_winner(self, service, item, receive_lot):
        lot = receive_lot(item.id, 25, "ONLY", date(2024, 1, 1))
        plans = [service.plan_consumption(item.id, Decimal("25")) for _ in range(WORKERS)]
        barrier = Barrier(WORKERS)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            futures = [
                pool.submit(_commit_after_barrier, service, plan, barrier, f"batch-{i}")
                for i, plan in enumerate(plans)
            ]
            outcomes = sorted(f.result(timeout=60) for f in futures)

        assert outcomes == ["ok", "stale"]

        lots = service.list_lots(item.id, include_inactive=True)
        assert lots[0].id == lot.id
        assert lots[0].quantity_remaining == Decimal("0")
        assert lots[0].is_active is False
        assert service.get_stock_balance(item.id).on_hand == Decimal("0")

        consumes = [
            m for m in service.get_movements(item.id)
            if m.movement_type is MovementType.CONSUME
        ]
        assert len(consumes) == 1
        assert service.reconcile_lot(lot.id).is_consistent

    def test_partial_overlap_never_goes_negative(self, service, item, receive_lot):
        # 30 units, two writers taking 6 each per round: the third round has one loser
        lot = receive_lot(item.id, 30, "ONLY", date(2024, 1, 1))

        for _ in range(3):
            barrier = Barrier(WORKERS)
            plans = [service.plan_consumption(item.id, Decimal("6")) for _ in range(WORKERS)]
            with ThreadPoolExecutor(max_workers=WORKERS) as pool:
                futures = [
                    pool.submit(_commit_after_barrier, service, plan, barrier, f"b{i}")
                    for i, plan in enumerate(plans)
                ]
                for f in futures:
                    f.result(timeout=60)

        remaining = service.list_lots(item.id, include_inactive=True)[0].quantity_remaining
        assert remaining >= Decimal("0")
        assert service.reconcile_lot(lot.id).is_consistent
        assert service.reconcile_item(item.id).is_consistent


class TestDisjointLots:
    def test_both_commit(self, service, item, receive_lot):
        lot_a = receive_lot(item.id, 10, "A", date(2024, 1, 1))
        lot_b = receive_lot(item.id, 10, "B", date(2024, 1, 2))
        plans = [
            service.plan_consumption(item.id, Decimal("10"), lot_id=lot_a.id),
            service.plan_consumption(item.id, Decimal("10"), lot_id=lot_b.id),
        ]
        barrier = Barrier(WORKERS)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            futures = [
                pool.submit(_commit_after_barrier, service, plan, barrier, f"batch-{i}")
                for i, plan in enumerate(plans)
            ]
            outcomes = [f.result(timeout=60) for f in futures]

        assert outcomes == ["ok", "ok"]
        assert service.get_stock_balance(item.id).on_hand == Decimal("0")
