"""
Typed façade over PostgREST queries.

Services build queries with the Supabase query builder and hand them to these helpers,
which await them and turn PostgREST failures into StoreError.
"""

from typing import Any, Dict, List, Optional

from fastapi import status
from postgrest.exceptions import APIError

from app.core.errors import StoreError

Row = Dict[str, Any]


async def fetch_rows(query, action: str = "query data") -> List[Row]:
    """Run a read query and return its rows (never None)."""
    try:
        result = await query.execute()
    except APIError as e:
        raise StoreError(f"Failed to {action}", e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return list(result.data or [])


async def fetch_first(query, action: str = "query data") -> Optional[Row]:
    """Run a read query limited to one row; None when nothing matches."""
    rows = await fetch_rows(query.limit(1), action)
    return rows[0] if rows else None


async def execute_write(query, action: str = "write data") -> List[Row]:
    """Run an insert/update/delete and return the affected rows."""
    try:
        result = await query.execute()
    except APIError as e:
        raise StoreError(f"Failed to {action}", e, status.HTTP_400_BAD_REQUEST)
    return list(result.data or [])
