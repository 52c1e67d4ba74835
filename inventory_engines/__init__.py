"""
Inventory engines -- pure calculation layer.

Allocation planning and stock balance projection.  No I/O; every
invocation is traced through ``inventory_engines.tracer``.
"""

from inventory_engines.allocation import (
    AllocationPlanner,
    ConsumptionPlan,
    PlanLine,
    coerce_strategy,
    order_candidates,
)
from inventory_engines.stock_balance import (
    StockAlert,
    StockBalance,
    StockBalanceProjector,
    classify_expiry,
)
from inventory_engines.tracer import traced_engine

__all__ = [
    "AllocationPlanner",
    "ConsumptionPlan",
    "PlanLine",
    "coerce_strategy",
    "order_candidates",
    "StockAlert",
    "StockBalance",
    "StockBalanceProjector",
    "classify_expiry",
    "traced_engine",
]
