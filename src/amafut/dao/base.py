"""Shared async Supabase client and the table-bound DAO base class."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions
from supabase_auth import AsyncSupportedStorage

from amafut.config import Settings, get_settings

T = TypeVar("T", bound=BaseModel)


class SupabaseClient:
    """Singleton async Supabase client manager."""

    _instance: AsyncClient | None = None

    @classmethod
    async def get_client(
        cls,
        settings: Settings | None = None,
        storage: AsyncSupportedStorage | None = None,
    ) -> AsyncClient:
        """Get or create the Supabase client.

        Args:
            settings: Connection settings. Defaults to the cached settings.
            storage: Where the auth client persists its session. Defaults to memory.
        """
        if cls._instance is None:
            settings = settings or get_settings()
            options = AsyncClientOptions(storage=storage) if storage is not None else None
            cls._instance = await acreate_client(
                settings.supabase_url,
                settings.supabase_key.get_secret_value(),
                options=options,
            )

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the shared client so the next call reconnects."""
        cls._instance = None


class BaseDAO(Generic[T]):
    """Base Data Access Object with the lookups every table needs."""

    table_name: str
    model_class: type[T]

    def __init__(self, client: AsyncClient):
        self.client = client

    @property
    def table(self):
        """Query builder for this DAO's table."""
        return self.client.table(self.table_name)

    async def get_by_id(self, id: str) -> T | None:
        """Fetch one row by primary key, or None."""
        result = await self.table.select("*").eq("id", id).limit(1).execute()

        if not result.data:
            return None

        return self._to_model(result.data[0])

    async def update(self, id: str, patch: dict[str, Any]) -> None:
        """Patch columns of an existing record."""
        await self.table.update(patch).eq("id", id).execute()

    def _to_model(self, row: dict) -> T:
        """Row to model; subclasses map columns explicitly."""
        return self.model_class(**row)

    def _to_db(self, model: T) -> dict:
        """Model to row, leaving unset columns to their database defaults."""
        return model.model_dump(exclude_none=True)
