import json
import shutil
from pathlib import Path
from typing import Any, List, Optional, Union

from storyreel.errors import NotFoundError

from .base import KeyValueStore


class FileStore(KeyValueStore):
    """
    One pretty-printed JSON file per key under ``base_path``.

    ``projects/abc`` is stored at ``{base_path}/projects/abc.json``.
    """

    def __init__(self, base_path: Union[str, Path]) -> None:
        self.base_path = Path(base_path)

    def _path(self, key: str) -> Path:
        parts = key.split("/")
        if any(p in ("", ".", "..") for p in parts):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_path.joinpath(*parts[:-1], f"{parts[-1]}.json")

    async def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")

    async def load(self, key: str) -> Any:
        path = self._path(key)
        if not path.is_file():
            raise NotFoundError(f"Key {key} not found")
        return json.loads(path.read_text(encoding="utf-8"))

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if not path.is_file():
            return
        path.unlink()

        # Prune empty parent directories up to the base.
        parent = path.parent
        while parent != self.base_path and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent

    async def list(self, prefix: Optional[str] = None) -> List[str]:
        if not self.base_path.is_dir():
            return []
        keys = []
        for path in sorted(self.base_path.rglob("*.json")):
            if not path.is_file():
                continue
            key = path.relative_to(self.base_path).with_suffix("").as_posix()
            if not prefix or key.startswith(prefix):
                keys.append(key)
        return keys

    async def clear(self) -> None:
        if self.base_path.exists():
            shutil.rmtree(self.base_path)
