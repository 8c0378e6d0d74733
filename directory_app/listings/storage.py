import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from directory_app.exceptions import StorageError

logger = structlog.get_logger()


class ObjectStorage(ABC):
    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None: ...

    @abstractmethod
    def public_url(self, path: str) -> str: ...


def _write_object(target: Path, data: bytes) -> None:
    """Write an object to disk synchronously (to be run in a thread)."""
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


class LocalObjectStorage(ObjectStorage):
    """Bucket stored as a directory tree and served by the app under /storage."""

    def __init__(self, root_dir: str | Path, bucket: str, base_url: str) -> None:
        self._root = Path(root_dir)
        self._bucket = bucket
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        bucket_dir = (self._root / self._bucket).resolve()
        target = (bucket_dir / path).resolve()
        if not target.is_relative_to(bucket_dir):
            raise StorageError(f"Refusing to write outside bucket: '{path}'")

        try:
            await asyncio.to_thread(_write_object, target, data)
        except OSError as exc:
            raise StorageError(f"Failed to store '{path}': {exc}") from exc

        logger.debug(
            "object_stored",
            bucket=self._bucket,
            path=path,
            size=len(data),
            content_type=content_type,
        )

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/storage/{self._bucket}/{path}"
