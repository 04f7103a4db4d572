"""
Interfaces of the systems the feed is built from.

The wiki engine provides concrete implementations; wikifeed only consumes
them. Lookups of content that does not exist return None (or an empty
sequence) or raise MissingContent.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntFlag
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .items import ChangeRecord


class RecentsFlag(IntFlag):
    NONE = 0
    SKIP_DELETED = 2
    SKIP_MINORS = 4
    SKIP_SUBSPACES = 8
    ONLY_CREATION = 16
    MEDIA_CHANGES = 32
    MEDIA_PAGES_MIXED = 64


@dataclass
class PageMeta:
    """
    Structured metadata of a page.
    """

    title: str | None = None
    abstract: str | None = None
    modified: int | None = None
    # a single tag or a list of tags
    subject: str | list[str] | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class PageEntry:
    """
    A page found by a namespace listing.
    """

    id: str
    mtime: int = 0


class PageStore(ABC):
    @abstractmethod
    async def get_metadata(self, page_id: str) -> PageMeta | None:
        ...

    @abstractmethod
    async def mtime(self, page_id: str) -> int | None:
        """
        Modification time of the current page file, None if it is gone.
        """
        ...

    @abstractmethod
    async def raw(self, page_id: str, rev: int | None = None) -> str | None:
        """
        Raw text of the page, optionally at a given revision.
        """
        ...

    @abstractmethod
    async def render(self, page_id: str, rev: int | None = None) -> str | None:
        """
        Rendered XHTML of the page, optionally at a given revision.
        """
        ...

    @abstractmethod
    async def revisions(self, page_id: str, first: int, num: int) -> Sequence[int]:
        """
        Previous revisions of the page (timestamps), newest first,
        excluding the current one.
        """
        ...

    @abstractmethod
    async def list_pages(self, namespace: str) -> Sequence[PageEntry]:
        """
        Pages located directly inside a namespace (no sub namespaces).
        """
        ...


class MediaStore(ABC):
    @abstractmethod
    async def mtime(self, media_id: str, rev: int | None = None) -> int | None:
        ...

    @abstractmethod
    async def revisions(self, media_id: str, first: int, num: int) -> Sequence[int]:
        ...

    @abstractmethod
    async def image_size(
        self, media_id: str, rev: int | None = None
    ) -> tuple[int, int] | None:
        """
        Pixel dimensions of an image, None for non-images or missing files.
        """
        ...


class ChangeLog(ABC):
    @abstractmethod
    async def recents(
        self, first: int, num: int, namespace: str | None, flags: RecentsFlag
    ) -> Sequence['ChangeRecord']:
        """
        Recent changes, newest first.
        """
        ...


class SearchIndex(ABC):
    @abstractmethod
    async def page_search(self, query: str) -> Sequence[str]:
        """
        Ids of matching pages ordered by relevance.
        """
        ...


class UserDirectory(ABC):
    @abstractmethod
    async def get_user_data(self, user: str) -> dict[str, Any] | None:
        """
        Account data of a user (at least 'name'), None for unknown users.
        """
        ...


@dataclass
class Wiki:
    """
    The collaborators a feed is built from.
    """

    pages: PageStore
    media: MediaStore
    changelog: ChangeLog
    search: SearchIndex | None = None
    users: UserDirectory | None = None
