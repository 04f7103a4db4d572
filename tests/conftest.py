from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from wikifeed.collaborators import (
    ChangeLog,
    MediaStore,
    PageEntry,
    PageMeta,
    PageStore,
    RecentsFlag,
    SearchIndex,
    UserDirectory,
    Wiki,
)
from wikifeed.config import FeedConfig
from wikifeed.exceptions import MissingContent
from wikifeed.items import ChangeRecord
from wikifeed.utils import get_ns

BASE_URL = 'http://wiki.example.com/'


class MemoryPages(PageStore):
    def __init__(self) -> None:
        self.pages: dict[str, dict[str, Any]] = {}
        self.render_calls: list[tuple[str, int | None]] = []

    def add(
        self,
        page_id: str,
        text: str = '',
        mtime: int = 0,
        meta: PageMeta | None = None,
        revisions: dict[int, str] | None = None,
        html: str | None = None,
    ) -> None:
        self.pages[page_id] = {
            'text': text,
            'mtime': mtime,
            'meta': meta,
            'revisions': revisions or {},
            'html': html if html is not None else f'<p>{text}</p>',
        }

    async def get_metadata(self, page_id: str) -> PageMeta | None:
        page = self.pages.get(page_id)
        return page['meta'] if page else None

    async def mtime(self, page_id: str) -> int | None:
        page = self.pages.get(page_id)
        return page['mtime'] if page else None

    async def raw(self, page_id: str, rev: int | None = None) -> str | None:
        page = self.pages.get(page_id)
        if page is None:
            return None
        if rev is None:
            return page['text']
        return page['revisions'].get(rev)

    async def render(self, page_id: str, rev: int | None = None) -> str | None:
        self.render_calls.append((page_id, rev))
        page = self.pages.get(page_id)
        if page is None:
            raise MissingContent(page_id)
        return page['html']

    async def revisions(self, page_id: str, first: int, num: int) -> Sequence[int]:
        page = self.pages.get(page_id)
        if page is None:
            return []
        revs = sorted(page['revisions'], reverse=True)
        return revs[first:first + num]

    async def list_pages(self, namespace: str) -> Sequence[PageEntry]:
        return [
            PageEntry(id=page_id, mtime=page['mtime'])
            for page_id, page in self.pages.items()
            if get_ns(page_id) == namespace
        ]


class MemoryMedia(MediaStore):
    def __init__(self) -> None:
        self.files: dict[str, dict[str, Any]] = {}

    def add(
        self,
        media_id: str,
        mtime: int = 0,
        size: tuple[int, int] | None = None,
        revisions: dict[int, tuple[int, int] | None] | None = None,
    ) -> None:
        self.files[media_id] = {
            'mtime': mtime,
            'size': size,
            'revisions': revisions or {},
        }

    async def mtime(self, media_id: str, rev: int | None = None) -> int | None:
        media = self.files.get(media_id)
        if media is None:
            return None
        return rev or media['mtime']

    async def revisions(self, media_id: str, first: int, num: int) -> Sequence[int]:
        media = self.files.get(media_id)
        if media is None:
            return []
        return sorted(media['revisions'], reverse=True)[first:first + num]

    async def image_size(
        self, media_id: str, rev: int | None = None
    ) -> tuple[int, int] | None:
        media = self.files.get(media_id)
        if media is None:
            return None
        if rev is None:
            return media['size']
        return media['revisions'].get(rev)


class MemoryChangeLog(ChangeLog):
    def __init__(self, records: list[ChangeRecord] | None = None) -> None:
        self.records = records or []
        self.calls: list[tuple[int, int, str | None, RecentsFlag]] = []

    async def recents(
        self, first: int, num: int, namespace: str | None, flags: RecentsFlag
    ) -> Sequence[ChangeRecord]:
        self.calls.append((first, num, namespace, flags))
        records = self.records
        if namespace:
            records = [r for r in records if r.id.startswith(namespace + ':')]
        return records[first:first + num]


class MemorySearch(SearchIndex):
    def __init__(self, results: dict[str, list[str]] | None = None) -> None:
        self.results = results or {}

    async def page_search(self, query: str) -> Sequence[str]:
        return self.results.get(query, [])


class MemoryUsers(UserDirectory):
    def __init__(self, users: dict[str, dict[str, Any]] | None = None) -> None:
        self.users = users or {}

    async def get_user_data(self, user: str) -> dict[str, Any] | None:
        return self.users.get(user)


@pytest.fixture
def config(tmp_path: Path) -> FeedConfig:
    return FeedConfig(
        title='Test Wiki',
        tagline='Changes of the test wiki',
        base_url=BASE_URL,
        mailguard='none',
        cache_dir=tmp_path / 'cache',
    )


@pytest.fixture
def pages() -> MemoryPages:
    return MemoryPages()


@pytest.fixture
def media() -> MemoryMedia:
    return MemoryMedia()


@pytest.fixture
def changelog() -> MemoryChangeLog:
    return MemoryChangeLog()


@pytest.fixture
def wiki(
    pages: MemoryPages, media: MemoryMedia, changelog: MemoryChangeLog
) -> Wiki:
    return Wiki(
        pages=pages,
        media=media,
        changelog=changelog,
        search=MemorySearch(),
        users=MemoryUsers(),
    )


@pytest.fixture
def five_changed_pages(pages: MemoryPages, changelog: MemoryChangeLog) -> list[str]:
    ids = [f'wiki:page{n}' for n in range(1, 6)]
    for n, page_id in enumerate(ids, start=1):
        pages.add(
            page_id,
            text=f'Text of page {n}',
            mtime=1_700_000_000 + n,
            meta=PageMeta(abstract=f'Abstract of page {n}'),
        )
    changelog.records = [
        ChangeRecord(id=page_id, date=1_700_000_000 + n, user='alice', summary='edit')
        for n, page_id in reversed(list(enumerate(ids, start=1)))
    ]
    return ids
