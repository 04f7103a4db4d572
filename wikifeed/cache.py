import hashlib
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    data: bytes
    stored_at: float
    path: Path


class FeedCache:
    """
    Rendered feed documents on disk, one file per cache key.

    An entry is fresh while none of the dependency files changed after it
    was written, it is younger than the maximum age and no purge was asked
    for. Stores replace the file atomically, so concurrent readers see
    either the previous or the new document.
    """

    def __init__(
        self,
        key: str,
        cache_dir: Path | str,
        ext: str = '.feed',
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.key = key
        self.cache_dir = Path(cache_dir)
        digest = hashlib.md5(key.encode('utf-8')).hexdigest()
        self.path = self.cache_dir / digest[0] / (digest + ext)
        self._clock = clock

    async def mtime(self) -> float | None:
        try:
            return await aiofiles.os.path.getmtime(self.path)
        except FileNotFoundError:
            return None

    async def use_cache(
        self, files: Iterable[Path | str] = (), age: int = 0, purge: bool = False
    ) -> bool:
        """
        Tell whether the stored document may be served.
        An `age` of 0 disables expiry.
        """
        if purge:
            logger.debug('Feed cache purged', key=self.key)
            return False
        stored_at = await self.mtime()
        if stored_at is None:
            return False
        if age and self._clock() - stored_at > age:
            logger.debug('Feed cache expired', key=self.key, age=age)
            return False
        for dependency in files:
            try:
                changed_at = await aiofiles.os.path.getmtime(dependency)
            except FileNotFoundError:
                continue
            if changed_at > stored_at:
                logger.debug('Feed cache dependency changed', key=self.key, file=str(dependency))
                return False
        return True

    async def retrieve(self) -> CacheEntry | None:
        try:
            stored_at = await aiofiles.os.path.getmtime(self.path)
            async with aiofiles.open(self.path, 'rb') as cached:
                data = await cached.read()
        except FileNotFoundError:
            return None
        return CacheEntry(data=data, stored_at=stored_at, path=self.path)

    async def store(self, data: bytes) -> CacheEntry:
        """
        Write the document next to the target, then rename it into place.
        """
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = self.path.with_name(f'{self.path.name}.{uuid.uuid4().hex}.tmp')
        try:
            async with aiofiles.open(tmp_path, 'wb') as tmp:
                await tmp.write(data)
                await tmp.flush()
            await aiofiles.os.replace(tmp_path, self.path)
        except BaseException:
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise
        stored_at = await aiofiles.os.path.getmtime(self.path)
        logger.info('Feed cache stored', key=self.key, path=str(self.path), size=len(data))
        return CacheEntry(data=data, stored_at=stored_at, path=self.path)
