from __future__ import annotations
from functools import lru_cache
from pathlib import Path, PurePosixPath
from threading import Lock
from typing import Dict, Iterable, Optional, Set

from settings import get_settings


class PhotoBucket:
    """Binary object store for photos attached to HACCP records."""

    def __init__(
        self,
        name: str,
        public_base_url: str,
        root_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.public_base_url = public_base_url.rstrip("/")
        self._objects: Dict[str, bytes] = {}
        self._known_keys: Set[str] = set()
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)
            self._load_existing_keys()

    def upload(self, path: str, data: bytes) -> str:
        """Store ``data`` under ``path`` and return its public URL."""
        key = self._normalize_key(path)
        if not data:
            raise ValueError("Uploaded photo is empty.")
        with self._lock:
            self._objects[key] = data
            self._known_keys.add(key)
            if self.root_path:
                target = self.root_path / key
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
        return self.public_url(key)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.name}/{self._normalize_key(path)}"

    def get_object(self, path: str) -> bytes:
        key = self._normalize_key(path)
        with self._lock:
            data = self._objects.get(key)
            if data is not None:
                return data

        if self.root_path:
            target = self.root_path / key
            if target.exists():
                data = target.read_bytes()
                with self._lock:
                    self._objects[key] = data
                    self._known_keys.add(key)
                return data

        raise KeyError(f"Object with key {key!r} not found in bucket {self.name!r}.")

    def list_objects(self) -> Iterable[str]:
        with self._lock:
            keys = set(self._known_keys)
            keys.update(self._objects.keys())
        return sorted(keys)

    @staticmethod
    def _normalize_key(path: str) -> str:
        parts = [part for part in PurePosixPath(path.replace("\\", "/")).parts if part not in ("/", "")]
        if not parts or any(part == ".." for part in parts):
            raise ValueError(f"Invalid object path {path!r}.")
        return "/".join(parts)

    def _load_existing_keys(self) -> None:
        assert self.root_path is not None
        for target in self.root_path.rglob("*"):
            if target.is_file():
                self._known_keys.add(target.relative_to(self.root_path).as_posix())


@lru_cache
def build_default_bucket(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> PhotoBucket:
    settings = get_settings()
    bucket_name = settings.bucket_name if name is None else name
    bucket_root = settings.bucket_root_path if root_path is None else root_path
    path = Path(bucket_root) if bucket_root else None
    return PhotoBucket(
        name=bucket_name, public_base_url=settings.public_base_url, root_path=path
    )
