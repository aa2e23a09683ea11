# core/supabase_helpers.py

from typing import Any, Dict, Iterable, List, Optional

from supabase import Client

from core.errors import store_error, UnknownServiceError
from core.logging_config import logger
from core.repository import Record
from core.supabase_client import get_supabase_client


# =================================================================
#  SUPABASE REPOSITORY: the production persistence port
# =================================================================
# Every method wraps client errors as UnknownServiceError so the
# engine never sees raw PostgREST / httpx exceptions.
#
# Must NOT be used for auth.users: see the auth admin helpers below.
# =================================================================

class SupabaseRepository:

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
            if self._client is None:
                raise UnknownServiceError("Supabase client not configured")
        return self._client

    def get(self, table: str, record_id: str) -> Optional[Record]:
        try:
            result = (
                self.client.table(table)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise store_error(e, f"Failed to fetch {table}/{record_id}") from e

        return result.data[0] if result.data else None

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
        try:
            query = self.client.table(table).select("*")
            for key, val in (filters or {}).items():
                query = query.eq(key, val)
            for key, values in (in_filters or {}).items():
                query = query.in_(key, list(values))
            if order_by:
                query = query.order(order_by, desc=desc)
            if limit:
                query = query.limit(limit)

            result = query.execute()
        except Exception as e:
            raise store_error(e, f"Failed to fetch from {table}") from e

        return result.data or []

    def insert(self, table: str, data: Record) -> Record:
        try:
            result = self.client.table(table).insert(data).execute()
        except Exception as e:
            raise store_error(e, f"Failed to insert into {table}") from e

        if not result.data:
            raise UnknownServiceError(f"Insert into {table} returned no row")
        return result.data[0]

    def update(self, table: str, record_id: str, data: Record) -> Optional[Record]:
        rows = self.update_where(table, {"id": record_id}, data)
        return rows[0] if rows else None

    def update_where(self, table: str, filters: Dict[str, Any], data: Record) -> List[Record]:
        try:
            query = self.client.table(table).update(data)
            for key, val in filters.items():
                query = query.eq(key, val)

            result = query.execute()
        except Exception as e:
            raise store_error(e, f"Failed to update {table}") from e

        return result.data or []


# =================================================================
#  SUPABASE AUTH ADMIN HELPERS
# =================================================================
# Changing the login email lives in GoTrue, not in a table, and needs
# the service-role key. The approval engine only flags the need
# ("auth_email_requires_admin_api"); the HTTP layer calls this.
# =================================================================

def update_login_email(user_id: str, new_email: str, client: Optional[Client] = None) -> bool:
    """
    Change the Supabase Auth email of a linked login identity.
    Returns True on success, False when the admin API rejected it.
    """
    client = client or get_supabase_client()
    if client is None:
        logger.error("Cannot update login email: Supabase client not configured")
        return False

    try:
        client.auth.admin.update_user_by_id(user_id, {"email": new_email})
    except Exception as e:
        logger.error(f"Failed to update login email for user {user_id}: {e}")
        return False

    logger.info(f"Login email updated for user {user_id}")
    return True
