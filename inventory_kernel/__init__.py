"""
Inventory Kernel

Lot-based inventory allocation and an append-only movement ledger:
- Deterministic FIFO / LIFO / FEFO / manual lot allocation
- Compare-and-commit ledger writes under concurrent writers
- Immutable movement history that replays to every cached quantity
"""

__version__ = "0.1.0"
