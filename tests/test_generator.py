import asyncio
import datetime
import xml.etree.ElementTree as ET

import aiofiles
import pytest

from wikifeed.generator import (
    FEED_CLASSES,
    Atom03Feed,
    Atom1Feed,
    Rss10Feed,
    Rss201rev2Feed,
    RssUserland091Feed,
    SyndicationFeed,
)
from wikifeed.options import FeedFormat

utc = datetime.timezone.utc
DATE = datetime.datetime(2024, 5, 17, 12, 30, tzinfo=utc)
BUILD_DATE = datetime.datetime(2024, 1, 1, tzinfo=utc)

ATOM = '{http://www.w3.org/2005/Atom}'
ATOM03 = '{http://purl.org/atom/ns#}'
RSS1 = '{http://purl.org/rss/1.0/}'
RDF = '{http://www.w3.org/1999/02/22-rdf-syntax-ns#}'
DC = '{http://purl.org/dc/elements/1.1/}'


async def _render(feed: SyndicationFeed) -> str:
    async with aiofiles.tempfile.TemporaryFile('w+', encoding='utf-8') as outfile:
        await feed.write(outfile, encoding='utf-8')
        await outfile.seek(0)
        return await outfile.read()


def render(feed: SyndicationFeed) -> str:
    return asyncio.run(_render(feed))


def make_feed(feed_type: type[SyndicationFeed], items: int = 1) -> SyndicationFeed:
    feed = feed_type(
        title='Test Wiki',
        link='http://wiki.example.com/',
        description='Changes',
        feed_url='http://wiki.example.com/feed.php',
        build_date=BUILD_DATE,
    )
    for n in range(items):
        feed.add_item(
            title=f'page{n}',
            link=f'http://wiki.example.com/doku.php?id=page{n}&do=diff',
            description='<p>Hello & welcome</p>',
            unique_id=f'http://wiki.example.com/doku.php?id=page{n}&do=diff',
            author_name='Bob',
            author_email='bob@undisclosed.example.com',
            pubdate=DATE,
            updateddate=DATE,
            categories=['wiki'],
        )
    return feed


def test_every_format_has_a_class():
    assert set(FEED_CLASSES) == set(FeedFormat)


@pytest.mark.parametrize('feed_type', list(FEED_CLASSES.values()))
def test_documents_are_well_formed(feed_type):
    document = render(make_feed(feed_type, items=2))
    assert document.startswith('<?xml version="1.0" encoding="utf-8"?>\n')
    ET.fromstring(document.encode('utf-8'))


@pytest.mark.parametrize('feed_type', list(FEED_CLASSES.values()))
def test_empty_feeds_are_well_formed(feed_type):
    document = render(make_feed(feed_type, items=0))
    ET.fromstring(document.encode('utf-8'))


@pytest.mark.parametrize('feed_type', list(FEED_CLASSES.values()))
def test_rendering_is_deterministic(feed_type):
    assert render(make_feed(feed_type)) == render(make_feed(feed_type))


def test_rss2():
    root = ET.fromstring(render(make_feed(Rss201rev2Feed)))
    assert root.tag == 'rss'
    assert root.get('version') == '2.0'
    channel = root.find('channel')
    assert channel.findtext('title') == 'Test Wiki'
    assert channel.findtext('lastBuildDate') == 'Fri, 17 May 2024 12:30:00 +0000'
    item = channel.find('item')
    assert item.findtext('link') == 'http://wiki.example.com/doku.php?id=page0&do=diff'
    assert item.findtext('description') == '<p>Hello & welcome</p>'
    assert item.findtext('author') == 'bob@undisclosed.example.com (Bob)'
    assert item.findtext('pubDate') == 'Fri, 17 May 2024 12:30:00 +0000'
    assert item.findtext('category') == 'wiki'


def test_rss091():
    root = ET.fromstring(render(make_feed(RssUserland091Feed)))
    assert root.get('version') == '0.91'
    item = root.find('channel/item')
    assert [child.tag for child in item] == ['title', 'link', 'description']


def test_rss1():
    root = ET.fromstring(render(make_feed(Rss10Feed, items=2)))
    assert root.tag == f'{RDF}RDF'
    channel = root.find(f'{RSS1}channel')
    assert channel.get(f'{RDF}about') == 'http://wiki.example.com/feed.php'
    resources = [
        li.get(f'{RDF}resource')
        for li in channel.findall(f'{RSS1}items/{RDF}Seq/{RDF}li')
    ]
    items = root.findall(f'{RSS1}item')
    assert resources == [item.get(f'{RDF}about') for item in items]
    assert items[0].findtext(f'{DC}date') == '2024-05-17T12:30:00+00:00'
    assert items[0].findtext(f'{DC}creator') == 'Bob <bob@undisclosed.example.com>'
    assert items[0].findtext(f'{DC}subject') == 'wiki'


def test_atom03():
    root = ET.fromstring(render(make_feed(Atom03Feed)))
    assert root.tag == f'{ATOM03}feed'
    assert root.get('version') == '0.3'
    entry = root.find(f'{ATOM03}entry')
    assert entry.findtext(f'{ATOM03}issued') == '2024-05-17T12:30:00+00:00'
    assert entry.findtext(f'{ATOM03}author/{ATOM03}name') == 'Bob'
    summary = entry.find(f'{ATOM03}summary')
    assert summary.get('mode') == 'escaped'
    assert summary.text == '<p>Hello & welcome</p>'


def test_atom1():
    root = ET.fromstring(render(make_feed(Atom1Feed)))
    assert root.tag == f'{ATOM}feed'
    assert root.findtext(f'{ATOM}updated') == '2024-05-17T12:30:00+00:00'
    assert root.findtext(f'{ATOM}subtitle') == 'Changes'
    assert root.findtext(f'{ATOM}id') == 'http://wiki.example.com/'
    entry = root.find(f'{ATOM}entry')
    assert entry.find(f'{ATOM}link').get('href') == (
        'http://wiki.example.com/doku.php?id=page0&do=diff'
    )
    assert entry.findtext(f'{ATOM}author/{ATOM}email') == 'bob@undisclosed.example.com'
    assert entry.find(f'{ATOM}category').get('term') == 'wiki'


def test_undated_items_have_no_date_elements():
    feed = Rss201rev2Feed(title='t', link='http://x/', description='d', build_date=BUILD_DATE)
    feed.add_item(title='a', link='http://x/a', description=None)
    root = ET.fromstring(render(feed))
    item = root.find('channel/item')
    assert item.find('pubDate') is None
    assert item.find('description') is None
    assert root.findtext('channel/lastBuildDate') == 'Mon, 01 Jan 2024 00:00:00 +0000'

