from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, TypeVar

from .config import FeedConfig
from .exceptions import InvalidParameter
from .hooks import Hooks
from .logging_config import get_logger

logger = get_logger(__name__)

E = TypeVar('E', bound=Enum)


class FeedMode(str, Enum):
    RECENT = 'recent'
    LIST = 'list'
    SEARCH = 'search'


class LinkTo(str, Enum):
    DIFF = 'diff'
    PAGE = 'page'
    REV = 'rev'
    CURRENT = 'current'


class ItemContent(str, Enum):
    ABSTRACT = 'abstract'
    DIFF = 'diff'
    HTMLDIFF = 'htmldiff'
    HTML = 'html'


class SortOrder(str, Enum):
    NATURAL = 'natural'
    DATE = 'date'


class ContentType(str, Enum):
    PAGES = 'pages'
    MEDIA = 'media'
    BOTH = 'both'


class FeedFormat(str, Enum):
    """
    Wire formats, each bound to the MIME type it is served with.
    """

    RSS091 = 'RSS0.91'
    RSS1 = 'RSS1.0'
    RSS2 = 'RSS2.0'
    ATOM03 = 'ATOM0.3'
    ATOM1 = 'ATOM1.0'

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]


_MIME_TYPES = {
    FeedFormat.RSS091: 'text/xml',
    FeedFormat.RSS1: 'application/xml',
    FeedFormat.RSS2: 'text/xml',
    FeedFormat.ATOM03: 'application/xml',
    FeedFormat.ATOM1: 'application/atom+xml',
}

# request "type" tokens, anything else is RSS 1.0
FORMAT_TOKENS = {
    'rss': FeedFormat.RSS091,
    'rss1': FeedFormat.RSS1,
    'rss2': FeedFormat.RSS2,
    'atom': FeedFormat.ATOM03,
    'atom1': FeedFormat.ATOM1,
}
FORMAT_NAMES = {feed_format: token for token, feed_format in FORMAT_TOKENS.items()}


@dataclass(frozen=True)
class FeedOptions:
    feed_mode: FeedMode = FeedMode.RECENT
    link_to: LinkTo = LinkTo.DIFF
    item_content: ItemContent = ItemContent.ABSTRACT
    namespace: str | None = None
    items: int = 20
    show_minor: bool = False
    only_new: bool = False
    sort: SortOrder = SortOrder.NATURAL
    search_query: str | None = None
    content_type: ContentType = ContentType.BOTH
    feed_format: FeedFormat = FeedFormat.RSS1
    guard_mail: bool = False

    def __post_init__(self) -> None:
        if self.items < 0:
            object.__setattr__(self, 'items', 0)

    @property
    def mime_type(self) -> str:
        return self.feed_format.mime_type

    def cache_key(self) -> str:
        """
        Return a string that differs whenever any option differs.
        """
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            parts.append(f'{f.name}={value}')
        return '&'.join(parts)

    def query_params(self) -> dict[str, Any]:
        """
        Request parameters that resolve back to these options.
        """
        return {
            'mode': self.feed_mode.value,
            'linkto': self.link_to.value,
            'content': self.item_content.value,
            'ns': self.namespace,
            'num': self.items,
            'minor': 1 if self.show_minor else None,
            'onlynewpages': 1 if self.only_new else None,
            'sort': self.sort.value,
            'q': self.search_query,
            'view': self.content_type.value,
            'type': FORMAT_NAMES[self.feed_format],
        }


def _param(params: Mapping[str, Any], name: str) -> str | None:
    """
    Return a stripped parameter value, treating empty strings as absent.
    """
    value = params.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_choice(enum: type[E], name: str, value: str) -> E:
    try:
        return enum(value)
    except ValueError:
        raise InvalidParameter(name, value)


def parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.lower() not in {'0', 'false', 'off', 'no'}


def parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidParameter(name, value)


def _choice(
    params: Mapping[str, Any], name: str, enum: type[E], default: E
) -> E:
    value = _param(params, name)
    if value is None:
        return default
    try:
        return parse_choice(enum, name, value)
    except InvalidParameter as exc:
        logger.debug('Falling back to default', param=exc.name, value=exc.value)
        return default


def _config_choice(enum: type[E], value: str, default: E) -> E:
    try:
        return enum(value)
    except ValueError:
        logger.warning('Invalid configured default', value=value, default=default.value)
        return default


async def resolve_options(
    params: Mapping[str, Any], config: FeedConfig, hooks: Hooks | None = None
) -> FeedOptions:
    """
    Turn raw request parameters into FeedOptions.

    Invalid values never raise: they are replaced with the configured or
    documented default. Registered ``options_postprocess`` hooks get the last
    word.
    """
    items = config.recent
    num = _param(params, 'num')
    if num is not None:
        try:
            items = parse_int('num', num)
        except InvalidParameter as exc:
            logger.debug('Falling back to default', param=exc.name, value=exc.value)

    token = _param(params, 'type') or config.rss_type
    feed_format = FORMAT_TOKENS.get(token, FeedFormat.RSS1)

    options = FeedOptions(
        feed_mode=_choice(params, 'mode', FeedMode, FeedMode.RECENT),
        link_to=_choice(
            params,
            'linkto',
            LinkTo,
            _config_choice(LinkTo, config.rss_linkto, LinkTo.DIFF),
        ),
        item_content=_choice(
            params,
            'content',
            ItemContent,
            _config_choice(ItemContent, config.rss_content, ItemContent.ABSTRACT),
        ),
        namespace=_param(params, 'ns'),
        items=max(0, items),
        show_minor=parse_bool(_param(params, 'minor')),
        only_new=parse_bool(_param(params, 'onlynewpages')),
        sort=_choice(params, 'sort', SortOrder, SortOrder.NATURAL),
        search_query=_param(params, 'q'),
        content_type=_choice(
            params,
            'view',
            ContentType,
            _config_choice(ContentType, config.rss_media, ContentType.BOTH),
        ),
        feed_format=feed_format,
        guard_mail=config.mailguard not in ('', 'none'),
    )
    if hooks is not None:
        options = await hooks.postprocess_options(options)
    return options
