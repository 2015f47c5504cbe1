"""File-backed session storage for the auth client.

The CLI runs one command per process, so the Supabase session has to outlive
the process. Items are kept as JSON in ~/.amafut/session.json with owner-only
permissions.
"""

import json
from pathlib import Path

from supabase_auth import AsyncSupportedStorage


class FileSessionStorage(AsyncSupportedStorage):
    """AsyncSupportedStorage that persists items to a JSON file."""

    def __init__(self, path: Path):
        self.path = path

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        # Secure permissions (owner read/write only)
        self.path.chmod(0o600)

    async def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    async def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    async def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
