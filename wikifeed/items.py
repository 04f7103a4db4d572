import datetime
import re
from collections.abc import Awaitable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from .config import FeedConfig
from .diff import table_diff, unified_diff
from .exceptions import MissingContent
from .logging_config import get_logger
from .options import FeedOptions, ItemContent, LinkTo
from .urls import UrlBuilder
from .utils import (
    from_timestamp,
    get_ns,
    hsc,
    obfuscate,
    strip_control_chars,
    strip_tags,
)

if TYPE_CHECKING:
    from .collaborators import PageMeta, Wiki
    from .hooks import Hooks

logger = get_logger(__name__)

T = TypeVar('T')

ANONYMOUS = 'Anonymous'
PLACEHOLDER_DOMAIN = 'undisclosed.example.com'
ANONYMOUS_EMAIL = f'anonymous@{PLACEHOLDER_DOMAIN}'

# bounding box of media previews, in pixels
DIFF_PREVIEW_SIZE = 300
PREVIEW_SIZE = 500

TOC_RE = re.compile(r'(<!-- TOC START -->).*(<!-- TOC END -->)', re.S)
ALIGN_LEFT_RE = re.compile(r'(<img [^>]*?class="medialeft")', re.S)
ALIGN_RIGHT_RE = re.compile(r'(<img [^>]*?class="mediaright")', re.S)


@dataclass
class ChangeRecord:
    """
    A raw entry produced by a source selector.
    `date` is in epoch seconds.
    """

    id: str
    media: bool = False
    date: int | None = None
    summary: str | None = None
    user: str | None = None
    type: str | None = None

    @classmethod
    def coerce(cls, raw: 'ChangeRecord | Mapping[str, Any] | str') -> 'ChangeRecord':
        """
        Accept records, bare ids and change log style mappings.
        """
        if isinstance(raw, ChangeRecord):
            return raw
        if isinstance(raw, Mapping):
            return cls(
                id=str(raw['id']),
                media=bool(raw.get('media')),
                date=raw.get('date'),
                summary=raw.get('summary', raw.get('sum')),
                user=raw.get('user'),
                type=raw.get('type'),
            )
        return cls(id=str(raw))


@dataclass
class FeedItem:
    title: str
    link: str
    description: str | None = None
    author: str | None = None
    author_email: str | None = None
    category: str | None = None
    date: datetime.datetime | None = None


def preview_size(width: int, height: int, max_size: int) -> tuple[int, int]:
    """
    Scale image dimensions down to fit a square bounding box.
    """
    if width > max_size or height > max_size:
        ratio = max_size / max(width, height)
        width = max(1, int(width * ratio))
        height = max(1, int(height * ratio))
    return width, height


class ItemBuilder:
    """
    Turns change records into feed items according to the feed options
    and the site policy.
    """

    link_handlers = {
        LinkTo.PAGE: 'link_to_page',
        LinkTo.REV: 'link_to_revisions',
        LinkTo.CURRENT: 'link_to_current',
        LinkTo.DIFF: 'link_to_diff',
    }
    content_handlers = {
        ItemContent.DIFF: 'content_diff',
        ItemContent.HTMLDIFF: 'content_diff',
        ItemContent.HTML: 'content_html',
        ItemContent.ABSTRACT: 'content_abstract',
    }

    def __init__(
        self,
        options: FeedOptions,
        config: FeedConfig,
        wiki: 'Wiki',
        urls: UrlBuilder | None = None,
    ) -> None:
        self.options = options
        self.config = config
        self.wiki = wiki
        self.urls = urls or UrlBuilder(config)

    async def _optional(self, lookup: Awaitable[T]) -> T | None:
        """
        Await a collaborator lookup, turning vanished content into None.
        """
        try:
            return await lookup
        except MissingContent as exc:
            logger.debug('Content missing', item_id=exc.item_id)
            return None

    async def build_all(
        self, records: Iterable[Any], hooks: 'Hooks | None' = None
    ) -> list[FeedItem]:
        """
        Build items for all records, in order, consulting the hooks.
        """
        records = [ChangeRecord.coerce(raw) for raw in records]
        items: list[FeedItem] = []
        if hooks is not None and not await hooks.advise_data_process(
            records, self.options
        ):
            return items
        for record in records:
            item = await self.build(record)
            added = hooks is None or await hooks.advise_item_add(
                item, record, self.options
            )
            if added:
                items.append(item)
            if hooks is not None:
                await hooks.notify_item_added(item, record, self.options, added)
        return items

    async def build(self, record: ChangeRecord) -> FeedItem:
        meta = None
        if not record.media:
            meta = await self._optional(self.wiki.pages.get_metadata(record.id))
        timestamp = await self.resolve_date(record, meta)
        author, author_email = await self.item_author(record)
        description = await self.item_description(record, meta, timestamp)
        # summaries and page text may carry characters XML cannot hold
        return FeedItem(
            title=strip_control_chars(self.item_title(record, meta)),
            link=self.item_link(record, timestamp),
            description=strip_control_chars(description),
            author=strip_control_chars(author),
            author_email=strip_control_chars(author_email),
            category=strip_control_chars(self.item_category(record, meta)),
            date=from_timestamp(timestamp),
        )

    async def resolve_date(
        self, record: ChangeRecord, meta: 'PageMeta | None'
    ) -> int:
        """
        Return the item date in epoch seconds, 0 when it is unknown.
        """
        if record.date:
            return int(record.date)
        if record.media:
            return await self._optional(self.wiki.media.mtime(record.id)) or 0
        mtime = await self._optional(self.wiki.pages.mtime(record.id))
        if mtime:
            return mtime
        if meta is not None and meta.modified:
            return int(meta.modified)
        return 0

    def item_title(self, record: ChangeRecord, meta: 'PageMeta | None') -> str:
        if self.config.useheading and meta is not None and meta.title:
            title = meta.title
        else:
            title = record.id
        if self.config.rss_show_summary and record.summary:
            title += ' - ' + strip_tags(record.summary)
        return title

    # Links

    def item_link(self, record: ChangeRecord, timestamp: int) -> str:
        handler = getattr(self, self.link_handlers[self.options.link_to])
        return handler(record, timestamp or None)

    def link_to_page(self, record: ChangeRecord, rev: int | None) -> str:
        if record.media:
            return self.urls.media_manager_url(
                {'image': record.id, 'ns': get_ns(record.id), 'rev': rev}
            )
        return self.urls.wiki_link(record.id, {'rev': rev})

    def link_to_revisions(self, record: ChangeRecord, rev: int | None) -> str:
        if record.media:
            return self.urls.media_manager_url(
                {
                    'image': record.id,
                    'ns': get_ns(record.id),
                    'rev': rev,
                    'tab_details': 'history',
                }
            )
        return self.urls.wiki_link(record.id, {'do': 'revisions', 'rev': rev})

    def link_to_current(self, record: ChangeRecord, rev: int | None) -> str:
        if record.media:
            return self.urls.media_manager_url(
                {'image': record.id, 'ns': get_ns(record.id)}
            )
        return self.urls.wiki_link(record.id)

    def link_to_diff(self, record: ChangeRecord, rev: int | None) -> str:
        if record.media:
            return self.urls.media_manager_url(
                {
                    'image': record.id,
                    'ns': get_ns(record.id),
                    'rev': rev,
                    'tab_details': 'history',
                    'mediado': 'diff',
                }
            )
        return self.urls.wiki_link(record.id, {'rev': rev, 'do': 'diff'})

    # Content

    async def item_description(
        self, record: ChangeRecord, meta: 'PageMeta | None', timestamp: int
    ) -> str | None:
        handler = getattr(self, self.content_handlers[self.options.item_content])
        try:
            return await handler(record, meta, timestamp)
        except MissingContent as exc:
            logger.debug('Content missing', item_id=exc.item_id)
            return None

    async def media_preview(
        self, media_id: str, rev: int | None = None, max_size: int = PREVIEW_SIZE
    ) -> str | None:
        """
        Return the (HTML attribute escaped) url of a scaled image preview.
        """
        size = await self._optional(self.wiki.media.image_size(media_id, rev))
        if not size:
            return None
        width, height = preview_size(size[0], size[1], max_size)
        params: dict[str, Any] = {'rev': rev, 'w': width, 'h': height}
        if rev is None:
            params['t'] = await self._optional(self.wiki.media.mtime(media_id))
        return self.urls.media_link(media_id, params, separator='&amp;')

    async def media_image(self, record: ChangeRecord) -> str:
        src = await self.media_preview(record.id)
        if not src:
            return ''
        return f'<img src="{src}" alt="{hsc(record.id)}" />'

    async def content_diff(
        self, record: ChangeRecord, meta: 'PageMeta | None', timestamp: int
    ) -> str:
        if record.media:
            return await self.media_diff(record)
        return await self.page_diff(record)

    async def media_diff(self, record: ChangeRecord) -> str:
        revs = await self.wiki.media.revisions(record.id, 0, 1)
        rev = revs[0] if revs else None
        src_r = await self.media_preview(record.id, max_size=DIFF_PREVIEW_SIZE)
        src_l = ''
        if rev:
            src_l = await self.media_preview(
                record.id, rev, max_size=DIFF_PREVIEW_SIZE
            ) or ''
        if not src_r:
            return ''
        return (
            '<table>'
            f'<tr><th width="50%">{rev or ""}</th>'
            f'<th width="50%">{hsc(self.config.current_label)}</th></tr>'
            f'<tr align="center"><td><img src="{src_l}" alt="" /></td><td>'
            f'<img src="{src_r}" alt="{hsc(record.id)}" /></td></tr>'
            '</table>'
        )

    async def page_diff(self, record: ChangeRecord) -> str:
        pages = self.wiki.pages
        revs = await pages.revisions(record.id, 0, 1)
        rev = revs[0] if revs else None
        old = ['']
        if rev:
            old = (await self._optional(pages.raw(record.id, rev)) or '').split('\n')
        new = (await self._optional(pages.raw(record.id)) or '').split('\n')

        if self.options.item_content is ItemContent.HTMLDIFF:
            # table_diff escapes its input, no need to escape its output
            return (
                '<table>'
                f'<tr><th colspan="2" width="50%">{rev or ""}</th>'
                f'<th colspan="2" width="50%">{hsc(self.config.current_label)}</th></tr>'
                + table_diff(old, new)
                + '</table>'
            )
        return '<pre>\n' + hsc(unified_diff(old, new)) + '\n</pre>'

    async def content_html(
        self, record: ChangeRecord, meta: 'PageMeta | None', timestamp: int
    ) -> str:
        if record.media:
            return await self.media_image(record)

        current = await self._optional(self.wiki.pages.mtime(record.id))
        rev = None if not timestamp or current == timestamp else timestamp
        content = await self.wiki.pages.render(record.id, rev) or ''

        # no TOC in feeds
        content = TOC_RE.sub('', content)
        content = ALIGN_LEFT_RE.sub(r'\1 align="left"', content)
        content = ALIGN_RIGHT_RE.sub(r'\1 align="right"', content)

        if not self.config.canonical:
            base_url = self.urls.base_url
            content = re.sub(
                r'(<a href|<img src)="(' + re.escape(self.config.base_path) + ')',
                lambda match: f'{match.group(1)}="{base_url}',
                content,
            )
        return content

    async def content_abstract(
        self, record: ChangeRecord, meta: 'PageMeta | None', timestamp: int
    ) -> str | None:
        if record.media:
            return await self.media_image(record)
        if meta is None:
            return None
        return meta.abstract

    # Author and category

    async def item_author(self, record: ChangeRecord) -> tuple[str, str]:
        user = (record.user or '').strip()
        if not user:
            return ANONYMOUS, ANONYMOUS_EMAIL

        name = user
        users = self.wiki.users
        if self.config.useacl and users is not None:
            info = await users.get_user_data(user)
            if info and self.config.showuseras in ('username', 'username_link'):
                name = info.get('name') or user

        author_email = f'{user}@{PLACEHOLDER_DOMAIN}'
        if self.options.guard_mail:
            author_email = obfuscate(author_email, self.config.mailguard)
        return name, author_email

    def item_category(self, record: ChangeRecord, meta: 'PageMeta | None') -> str | None:
        subject = meta.subject if meta is not None else None
        if isinstance(subject, (list, tuple)):
            subject = subject[0] if subject else None
        if subject:
            return str(subject)
        return get_ns(record.id) or None
