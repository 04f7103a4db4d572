import datetime
from collections.abc import Iterable
from typing import Any

from aiofiles.threadpool.text import AsyncTextIOWrapper

from .options import FeedFormat
from .utils import (
    SimplerXMLGenerator,
    get_tag_uri,
    iri_to_uri,
    rfc2822_date,
    rfc3339_date,
    to_str,
    utc,
)

DC_NS = 'http://purl.org/dc/elements/1.1/'


class SyndicationFeed:
    """
    Base class for all syndication feeds. Subclasses should provide write().
    """

    def __init__(
        self,
        title: str,
        link: str,
        description: str,
        language: str | None = None,
        feed_url: str | None = None,
        build_date: datetime.datetime | None = None,
    ):
        self.feed: dict = {
            'title': to_str(title),
            'link': iri_to_uri(link),
            'description': to_str(description),
            'language': to_str(language),
            'feed_url': iri_to_uri(feed_url),
            'build_date': build_date,
        }
        self.items: list = []

    def add_item(
        self,
        title: str,
        link: str,
        description: str | None,
        author_email: str | None = None,
        author_name: str | None = None,
        pubdate: datetime.datetime | None = None,
        unique_id: str | None = None,
        categories: Iterable | None = None,
        updateddate: datetime.datetime | None = None,
    ) -> None:
        """
        Add an item to the feed. All args are expected to be strings except
        pubdate and updateddate, which are datetime.datetime objects.
        """
        self.items.append(
            {
                'title': to_str(title),
                'link': iri_to_uri(link),
                'description': to_str(description),
                'author_email': to_str(author_email),
                'author_name': to_str(author_name),
                'pubdate': pubdate,
                'updateddate': updateddate,
                'unique_id': to_str(unique_id),
                'categories': [str(c) for c in categories or []],
            }
        )

    def num_items(self) -> int:
        return len(self.items)

    def root_attributes(self) -> dict:
        """
        Return extra attributes to place on the root (i.e. feed/channel) element.
        Called from write().
        """
        return {}

    async def add_root_elements(self, handler: SimplerXMLGenerator) -> None:
        """
        Add elements in the root (i.e. feed/channel) element. Called
        from write().
        """
        pass

    def item_attributes(self, item: Any) -> dict:
        """
        Return extra attributes to place on each item (i.e. item/entry) element.
        """
        return {}

    async def add_item_elements(self, handler: SimplerXMLGenerator, item: Any) -> None:
        """
        Add elements on each item (i.e. item/entry) element.
        """
        pass

    async def write(self, outfile: AsyncTextIOWrapper, encoding: str) -> None:
        """
        Output the feed in the given encoding to outfile, which is a file-like
        object. Subclasses should override this.
        """
        raise NotImplementedError(
            'subclasses of SyndicationFeed must provide a write() method'
        )

    def latest_post_date(self) -> datetime.datetime:
        """
        Return the latest item's pubdate or updateddate. Without dated items
        fall back to the build date given to the feed, then to the current
        UTC date/time.
        """
        latest_date = None
        date_keys = ('updateddate', 'pubdate')

        for item in self.items:
            for date_key in date_keys:
                item_date = item.get(date_key)
                if item_date and (latest_date is None or item_date > latest_date):
                    latest_date = item_date
        if latest_date is not None:
            return latest_date
        return self.feed['build_date'] or datetime.datetime.now(tz=utc)


class RssFeed(SyndicationFeed):
    """
    RSS syndication feed. Base class for RSS 0.91 and 2.0.
    """

    _version = ''

    async def write(self, outfile: AsyncTextIOWrapper, encoding: str = 'utf-8') -> None:
        handler = SimplerXMLGenerator(outfile, encoding)
        await handler.startDocument()
        await handler.startElement('rss', self.rss_attributes())
        await handler.startElement('channel', self.root_attributes())
        await self.add_root_elements(handler)
        await self.write_items(handler)
        await handler.endElement('channel')
        await handler.endElement('rss')
        await handler.endDocument()

    def rss_attributes(self) -> dict:
        """
        Return attributes to place on the top level <rss> element.
        """
        return {'version': self._version}

    async def write_items(self, handler: SimplerXMLGenerator) -> None:
        for item in self.items:
            await handler.startElement('item', self.item_attributes(item))
            await self.add_item_elements(handler, item)
            await handler.endElement('item')

    async def add_root_elements(self, handler: SimplerXMLGenerator) -> None:
        await handler.addQuickElement('title', self.feed['title'])
        await handler.addQuickElement('link', self.feed['link'])
        await handler.addQuickElement('description', self.feed['description'])
        if self.feed['language'] is not None:
            await handler.addQuickElement('language', self.feed['language'])
        await handler.addQuickElement(
            'lastBuildDate', rfc2822_date(self.latest_post_date())
        )


class RssUserland091Feed(RssFeed):
    """
    RSS 0.91 specification of RSS syndication feed.
    """

    _version = '0.91'

    async def add_item_elements(self, handler: SimplerXMLGenerator, item: Any) -> None:
        await handler.addQuickElement('title', item['title'])
        await handler.addQuickElement('link', item['link'])
        if item['description'] is not None:
            await handler.addQuickElement('description', item['description'])


class Rss201rev2Feed(RssFeed):
    """
    Rss 2.0 specification of RSS syndication feed.
    """

    # Spec: https://cyber.harvard.edu/rss/rss.html
    _version = '2.0'

    def rss_attributes(self) -> dict:
        return {
            'version': self._version,
            'xmlns:atom': 'http://www.w3.org/2005/Atom',
            'xmlns:dc': DC_NS,
        }

    async def add_root_elements(self, handler: SimplerXMLGenerator) -> None:
        await super().add_root_elements(handler)
        if self.feed['feed_url'] is not None:
            await handler.addQuickElement(
                'atom:link', None, {'rel': 'self', 'href': self.feed['feed_url']}
            )

    async def add_item_elements(self, handler: SimplerXMLGenerator, item: Any) -> None:
        await handler.addQuickElement('title', item['title'])
        await handler.addQuickElement('link', item['link'])
        if item['description'] is not None:
            await handler.addQuickElement('description', item['description'])

        # Author information.
        if item['author_name'] and item['author_email']:
            await handler.addQuickElement(
                'author', '{} ({})'.format(item['author_email'], item['author_name'])
            )
        elif item['author_email']:
            await handler.addQuickElement('author', item['author_email'])
        elif item['author_name']:
            await handler.addQuickElement('dc:creator', item['author_name'])

        if item['pubdate'] is not None:
            await handler.addQuickElement('pubDate', rfc2822_date(item['pubdate']))
        if item['unique_id'] is not None:
            await handler.addQuickElement('guid', item['unique_id'])

        for cat in item['categories']:
            await handler.addQuickElement('category', cat)


class Rss10Feed(SyndicationFeed):
    """
    RSS 1.0, an RDF vocabulary with Dublin Core for dates and authors.
    """

    # Spec: https://web.resource.org/rss/1.0/spec
    ns = 'http://purl.org/rss/1.0/'
    rdf_ns = 'http://www.w3.org/1999/02/22-rdf-syntax-ns#'

    async def write(self, outfile: AsyncTextIOWrapper, encoding: str = 'utf-8') -> None:
        handler = SimplerXMLGenerator(outfile, encoding)
        await handler.startDocument()
        await handler.startElement('rdf:RDF', self.root_attributes())
        await handler.startElement(
            'channel', {'rdf:about': self.feed['feed_url'] or self.feed['link']}
        )
        await self.add_root_elements(handler)
        await handler.endElement('channel')
        await self.write_items(handler)
        await handler.endElement('rdf:RDF')
        await handler.endDocument()

    def root_attributes(self) -> dict:
        return {'xmlns': self.ns, 'xmlns:rdf': self.rdf_ns, 'xmlns:dc': DC_NS}

    async def add_root_elements(self, handler: SimplerXMLGenerator) -> None:
        await handler.addQuickElement('title', self.feed['title'])
        await handler.addQuickElement('link', self.feed['link'])
        await handler.addQuickElement('description', self.feed['description'])
        await handler.addQuickElement('dc:date', rfc3339_date(self.latest_post_date()))
        if self.feed['language'] is not None:
            await handler.addQuickElement('dc:language', self.feed['language'])
        await handler.startElement('items', {})
        await handler.startElement('rdf:Seq', {})
        for item in self.items:
            await handler.addQuickElement('rdf:li', None, {'rdf:resource': item['link']})
        await handler.endElement('rdf:Seq')
        await handler.endElement('items')

    async def write_items(self, handler: SimplerXMLGenerator) -> None:
        for item in self.items:
            await handler.startElement('item', {'rdf:about': item['link']})
            await self.add_item_elements(handler, item)
            await handler.endElement('item')

    async def add_item_elements(self, handler: SimplerXMLGenerator, item: Any) -> None:
        await handler.addQuickElement('dc:format', 'text/html')
        if item['pubdate'] is not None:
            await handler.addQuickElement('dc:date', rfc3339_date(item['pubdate']))
        await handler.addQuickElement('title', item['title'])
        await handler.addQuickElement('link', item['link'])
        if item['description'] is not None:
            await handler.addQuickElement('description', item['description'])
        if item['author_name'] is not None:
            creator = item['author_name']
            if item['author_email'] is not None:
                creator = '{} <{}>'.format(creator, item['author_email'])
            await handler.addQuickElement('dc:creator', creator)
        for cat in item['categories']:
            await handler.addQuickElement('dc:subject', cat)


class Atom03Feed(SyndicationFeed):
    """
    The pre-standard Atom 0.3 format.
    """

    # Spec: https://web.archive.org/web/2004/http://www.atomenabled.org/developers/syndication/atom-format-spec.php
    ns = 'http://purl.org/atom/ns#'

    async def write(self, outfile: AsyncTextIOWrapper, encoding: str = 'utf-8') -> None:
        handler = SimplerXMLGenerator(outfile, encoding)
        await handler.startDocument()
        await handler.startElement('feed', self.root_attributes())
        await self.add_root_elements(handler)
        await self.write_items(handler)
        await handler.endElement('feed')
        await handler.endDocument()

    def root_attributes(self) -> dict:
        attrs = {'version': '0.3', 'xmlns': self.ns, 'xmlns:dc': DC_NS}
        if self.feed['language'] is not None:
            attrs['xml:lang'] = self.feed['language']
        return attrs

    async def add_root_elements(self, handler: SimplerXMLGenerator) -> None:
        await handler.addQuickElement('title', self.feed['title'])
        if self.feed['description']:
            await handler.addQuickElement('tagline', self.feed['description'])
        await handler.addQuickElement(
            'link',
            None,
            {'rel': 'alternate', 'type': 'text/html', 'href': self.feed['link']},
        )
        await handler.addQuickElement('id', self.feed['link'])
        await handler.addQuickElement('modified', rfc3339_date(self.latest_post_date()))

    async def write_items(self, handler: SimplerXMLGenerator) -> None:
        for item in self.items:
            await handler.startElement('entry', self.item_attributes(item))
            await self.add_item_elements(handler, item)
            await handler.endElement('entry')

    async def add_item_elements(self, handler: SimplerXMLGenerator, item: Any) -> None:
        await handler.addQuickElement('title', item['title'])
        await handler.addQuickElement(
            'link', None, {'rel': 'alternate', 'type': 'text/html', 'href': item['link']}
        )
        if item['pubdate'] is not None:
            await handler.addQuickElement('created', rfc3339_date(item['pubdate']))
            await handler.addQuickElement('issued', rfc3339_date(item['pubdate']))
            await handler.addQuickElement(
                'modified', rfc3339_date(item['updateddate'] or item['pubdate'])
            )
        await handler.addQuickElement(
            'id', item['unique_id'] or get_tag_uri(item['link'], item['pubdate'])
        )
        if item['author_name'] is not None:
            await handler.startElement('author', {})
            await handler.addQuickElement('name', item['author_name'])
            if item['author_email'] is not None:
                await handler.addQuickElement('email', item['author_email'])
            await handler.endElement('author')
        if item['description'] is not None:
            await handler.addQuickElement(
                'summary', item['description'], {'type': 'text/html', 'mode': 'escaped'}
            )
        for cat in item['categories']:
            await handler.addQuickElement('dc:subject', cat)


class Atom1Feed(SyndicationFeed):
    """
    The Atom Syndication Format of feeds.
    """

    # Spec: https://tools.ietf.org/html/rfc4287
    ns = 'http://www.w3.org/2005/Atom'

    async def write(self, outfile: AsyncTextIOWrapper, encoding: str = 'utf-8') -> None:
        handler = SimplerXMLGenerator(outfile, encoding)
        await handler.startDocument()
        await handler.startElement('feed', self.root_attributes())
        await self.add_root_elements(handler)
        await self.write_items(handler)
        await handler.endElement('feed')
        await handler.endDocument()

    def root_attributes(self) -> dict:
        if self.feed['language'] is not None:
            return {'xmlns': self.ns, 'xml:lang': self.feed['language']}
        else:
            return {'xmlns': self.ns}

    async def add_root_elements(self, handler: SimplerXMLGenerator) -> None:
        await handler.addQuickElement('title', self.feed['title'])
        await handler.addQuickElement(
            'link', None, {'rel': 'alternate', 'href': self.feed['link']}
        )
        if self.feed['feed_url'] is not None:
            await handler.addQuickElement(
                'link', None, {'rel': 'self', 'href': self.feed['feed_url']}
            )
        await handler.addQuickElement('id', self.feed['link'])
        await handler.addQuickElement('updated', rfc3339_date(self.latest_post_date()))
        if self.feed['description']:
            await handler.addQuickElement('subtitle', self.feed['description'])

    async def write_items(self, handler: SimplerXMLGenerator) -> None:
        for item in self.items:
            await handler.startElement('entry', self.item_attributes(item))
            await self.add_item_elements(handler, item)
            await handler.endElement('entry')

    async def add_item_elements(self, handler: SimplerXMLGenerator, item: Any) -> None:
        await handler.addQuickElement('title', item['title'])
        await handler.addQuickElement(
            'link', None, {'href': item['link'], 'rel': 'alternate'}
        )

        if item['pubdate'] is not None:
            await handler.addQuickElement('published', rfc3339_date(item['pubdate']))

        if item['updateddate'] is not None:
            await handler.addQuickElement('updated', rfc3339_date(item['updateddate']))

        # Author information.
        if item['author_name'] is not None:
            await handler.startElement('author', {})
            await handler.addQuickElement('name', item['author_name'])
            if item['author_email'] is not None:
                await handler.addQuickElement('email', item['author_email'])
            await handler.endElement('author')

        # Unique ID.
        if item['unique_id'] is not None:
            unique_id = item['unique_id']
        else:
            unique_id = get_tag_uri(item['link'], item['pubdate'])
        await handler.addQuickElement('id', unique_id)

        # Summary.
        if item['description'] is not None:
            await handler.addQuickElement(
                'summary', item['description'], {'type': 'html'}
            )

        # Categories.
        for cat in item['categories']:
            await handler.addQuickElement('category', None, {'term': cat})


FEED_CLASSES: dict[FeedFormat, type[SyndicationFeed]] = {
    FeedFormat.RSS091: RssUserland091Feed,
    FeedFormat.RSS1: Rss10Feed,
    FeedFormat.RSS2: Rss201rev2Feed,
    FeedFormat.ATOM03: Atom03Feed,
    FeedFormat.ATOM1: Atom1Feed,
}
