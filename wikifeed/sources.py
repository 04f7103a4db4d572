from collections.abc import Awaitable, Callable, Sequence

from .collaborators import RecentsFlag, Wiki
from .config import FeedConfig
from .items import ChangeRecord
from .logging_config import get_logger
from .options import ContentType, FeedMode, FeedOptions, SortOrder
from .utils import clean_id, natural_key

logger = get_logger(__name__)

Selector = Callable[[FeedOptions, FeedConfig, Wiki], Awaitable[Sequence[ChangeRecord | str]]]


def recents_flags(options: FeedOptions, config: FeedConfig) -> RecentsFlag:
    flags = RecentsFlag.NONE
    if not config.rss_show_deleted:
        flags |= RecentsFlag.SKIP_DELETED
    if not options.show_minor:
        flags |= RecentsFlag.SKIP_MINORS
    if options.only_new:
        flags |= RecentsFlag.ONLY_CREATION
    if config.mediarevisions:
        if options.content_type is ContentType.MEDIA:
            flags |= RecentsFlag.MEDIA_CHANGES
        elif options.content_type is ContentType.BOTH:
            flags |= RecentsFlag.MEDIA_PAGES_MIXED
    return flags


async def recent_changes(
    options: FeedOptions, config: FeedConfig, wiki: Wiki
) -> Sequence[ChangeRecord]:
    """
    The latest changes, newest first, at most `options.items` of them.
    """
    if options.items == 0:
        return []
    flags = recents_flags(options, config)
    recents = await wiki.changelog.recents(0, options.items, options.namespace, flags)
    return list(recents)[: options.items]


async def list_namespace(
    options: FeedOptions, config: FeedConfig, wiki: Wiki
) -> Sequence[str]:
    """
    Pages directly inside the requested namespace.
    """
    namespace = clean_id(options.namespace)
    entries = list(await wiki.pages.list_pages(namespace))
    if options.sort is SortOrder.DATE:
        entries.sort(key=lambda entry: entry.mtime, reverse=True)
    else:
        entries.sort(key=lambda entry: natural_key(entry.id))
    return [entry.id for entry in entries]


async def search(
    options: FeedOptions, config: FeedConfig, wiki: Wiki
) -> Sequence[str]:
    """
    Pages matching the search query, best match first.
    No query or no search facility simply yields nothing.
    """
    if not options.search_query or not config.search_enabled or wiki.search is None:
        return []
    return list(await wiki.search.page_search(options.search_query))


SELECTORS: dict[FeedMode, Selector] = {
    FeedMode.RECENT: recent_changes,
    FeedMode.LIST: list_namespace,
    FeedMode.SEARCH: search,
}


async def select_sources(
    options: FeedOptions, config: FeedConfig, wiki: Wiki
) -> Sequence[ChangeRecord | str]:
    """
    Run the selector for the requested feed mode.
    A failing collaborator degrades to an empty feed.
    """
    selector = SELECTORS[options.feed_mode]
    try:
        return await selector(options, config, wiki)
    except Exception:
        logger.warning(
            'Source selection failed', mode=options.feed_mode.value, exc_info=True
        )
        return []
