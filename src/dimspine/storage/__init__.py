"""SQLite warehouse: DDL, raw landing, atomic publish."""

from dimspine.storage.warehouse import RunRecord, Warehouse

__all__ = ["RunRecord", "Warehouse"]
