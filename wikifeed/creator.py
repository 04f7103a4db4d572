import datetime

import aiofiles

from .collaborators import Wiki
from .config import FeedConfig
from .exceptions import BuildFailure
from .generator import FEED_CLASSES, SyndicationFeed
from .hooks import Hooks
from .items import FeedItem, ItemBuilder
from .logging_config import get_logger
from .options import FeedMode, FeedOptions
from .sources import select_sources
from .urls import UrlBuilder
from .utils import strip_control_chars

logger = get_logger(__name__)

ENCODING = 'utf-8'


class FeedCreator:
    """
    Builds the complete feed document for one set of options.
    """

    def __init__(
        self,
        options: FeedOptions,
        config: FeedConfig,
        wiki: Wiki,
        hooks: Hooks | None = None,
    ) -> None:
        self.options = options
        self.config = config
        self.wiki = wiki
        self.hooks = hooks
        self.urls = UrlBuilder(config)

    def feed_title(self) -> str:
        title = self.config.title
        if self.options.feed_mode is FeedMode.LIST and self.options.namespace:
            title += ' - ' + self.options.namespace
        elif self.options.feed_mode is FeedMode.SEARCH and self.options.search_query:
            title += ' - search: ' + self.options.search_query
        return strip_control_chars(title)

    def get_feed(
        self, feed_url: str | None = None, build_date: datetime.datetime | None = None
    ) -> SyndicationFeed:
        feed_type = FEED_CLASSES[self.options.feed_format]
        return feed_type(
            title=self.feed_title(),
            link=self.urls.base_url,
            description=self.config.tagline,
            language=self.config.language,
            feed_url=feed_url,
            build_date=build_date,
        )

    def populate_feed(self, feed: SyndicationFeed, items: list[FeedItem]) -> None:
        for item in items:
            feed.add_item(
                title=item.title,
                link=item.link,
                description=item.description,
                unique_id=item.link,
                author_name=item.author,
                author_email=item.author_email,
                pubdate=item.date,
                updateddate=item.date,
                categories=[item.category] if item.category else None,
            )

    async def render(self, feed: SyndicationFeed) -> bytes:
        """
        Serialize a feed through a temporary file.
        """
        async with aiofiles.tempfile.TemporaryFile(
            'w+', newline='\n', encoding=ENCODING
        ) as outfile:
            await feed.write(outfile, encoding=ENCODING)
            await outfile.seek(0)
            document = await outfile.read()
        return document.encode(ENCODING)

    async def build(
        self, feed_url: str | None = None, build_date: datetime.datetime | None = None
    ) -> bytes:
        """
        Select, build and serialize. Anything unexpected is raised as
        BuildFailure.
        """
        records = await select_sources(self.options, self.config, self.wiki)
        try:
            builder = ItemBuilder(self.options, self.config, self.wiki, self.urls)
            items = await builder.build_all(records, self.hooks)
            feed = self.get_feed(feed_url, build_date)
            self.populate_feed(feed, items)
            document = await self.render(feed)
        except Exception as exc:
            logger.exception(
                'Feed build failed',
                mode=self.options.feed_mode.value,
                format=self.options.feed_format.value,
            )
            raise BuildFailure(str(exc) or exc.__class__.__name__) from exc
        logger.debug(
            'Feed built',
            mode=self.options.feed_mode.value,
            format=self.options.feed_format.value,
            items=feed.num_items(),
        )
        return document
