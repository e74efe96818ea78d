"""Shared in-memory tables backing every repository"""
import asyncio
import copy
from typing import Any, Dict


class InMemoryStore:
    """Holds one dict per table so that a unit of work can snapshot and restore them together"""

    TABLES = (
        "properties",
        "rooms",
        "units",
        "bookings",
        "dues",
        "receipts",
        "transfers",
        "vendors",
        "payouts",
        "users",
        "notifications",
        "provider_settings",
    )

    def __init__(self):
        for name in self.TABLES:
            setattr(self, name, {})
        self.lock = asyncio.Lock()

    def table(self, name: str) -> Dict[Any, Any]:
        return getattr(self, name)

    def snapshot(self) -> Dict[str, Dict[Any, Any]]:
        return {name: copy.deepcopy(self.table(name)) for name in self.TABLES}

    def restore(self, snapshot: Dict[str, Dict[Any, Any]]) -> None:
        # Tables are mutated in place; repositories keep references to the store, not the dicts
        for name, rows in snapshot.items():
            table = self.table(name)
            table.clear()
            table.update(rows)
