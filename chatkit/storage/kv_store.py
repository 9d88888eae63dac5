import asyncio
import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional


class KeyValueStore(ABC):
    """Async key-value persistence surface. Values must be JSON-serializable."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> int:
        pass

    async def close(self) -> None:
        """Release backend resources, if any."""
        return None


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are deep-copied so callers never share state with it."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> bool:
        # round-trip through json to reject values a durable backend could not store
        self._data[key] = json.loads(json.dumps(value))
        return True

    async def delete(self, key: str) -> int:
        if key not in self._data:
            return 0
        del self._data[key]
        return 1

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """
    All keys live in a single JSON document on disk.

    Every write rewrites the document through a temp file and `os.replace`, so the file
    on disk is always either the previous or the new complete state. Disk I/O runs in a
    worker thread; writes are serialized in call order.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._data: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            raw = f.read()
        return json.loads(raw) if raw.strip() else {}

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def _load(self) -> Dict[str, Any]:
        if self._data is None:
            async with self._lock:
                if self._data is None:
                    self._data = await asyncio.to_thread(self._read)
        return self._data

    async def _flush(self) -> None:
        # snapshot on the loop thread; lock waiters are FIFO so the last payload wins
        payload = json.dumps(self._data, ensure_ascii=False, indent=2)
        async with self._lock:
            await asyncio.to_thread(self._write, payload)

    async def get(self, key: str, default: Any = None) -> Any:
        data = await self._load()
        if key not in data:
            return default
        return copy.deepcopy(data[key])

    async def set(self, key: str, value: Any) -> bool:
        data = await self._load()
        data[key] = json.loads(json.dumps(value))
        await self._flush()
        return True

    async def delete(self, key: str) -> int:
        data = await self._load()
        if key not in data:
            return 0
        del data[key]
        await self._flush()
        return 1
