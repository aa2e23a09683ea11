# core/repository.py

from typing import Any, Dict, Iterable, List, Optional, Protocol


Record = Dict[str, Any]


class Repository(Protocol):
    """
    Persistence port consumed by the engine, the context resolver and the
    room-transfer workflow.

    Every method addresses a table by name and exchanges plain dict rows,
    exactly what PostgREST returns. Implementations: SupabaseRepository
    (core.supabase_helpers) in production, an in-memory fake in tests.
    Writes are independent statements; there is no cross-table transaction.
    """

    def get(self, table: str, record_id: str) -> Optional[Record]:
        ...

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        *,
        in_filters: Optional[Dict[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        ...

    def insert(self, table: str, data: Record) -> Record:
        ...

    def update(self, table: str, record_id: str, data: Record) -> Optional[Record]:
        ...

    def update_where(self, table: str, filters: Dict[str, Any], data: Record) -> List[Record]:
        """Conditional update; returns the rows that matched (possibly none)."""
        ...
