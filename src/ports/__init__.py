"""Port interfaces - Layer boundary contracts.

Ports:
    RecordStorePort - Relational record persistence (select/get/insert/update/delete)
"""

from src.ports.record_store import RecordStorePort

__all__ = [
    "RecordStorePort",
]
