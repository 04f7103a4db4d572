import dataclasses
import os
import time
from pathlib import Path

import pytest
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from wikifeed.endpoint import feed_endpoint
from wikifeed.hooks import Hooks


def make_client(wiki, config, hooks=None) -> TestClient:
    app = Starlette(routes=[Route('/feed.php', feed_endpoint(wiki, config, hooks))])
    return TestClient(app)


@pytest.fixture
def client(wiki, config, five_changed_pages) -> TestClient:
    return make_client(wiki, config)


def test_serves_feed(client: TestClient):
    response = client.get('/feed.php', params={'type': 'rss2'})
    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/xml')
    assert response.headers['cache-control'] == 'must-revalidate, post-check=0, pre-check=0'
    assert response.headers['pragma'] == 'public'
    assert response.headers['x-robots-tag'] == 'noindex'
    assert 'last-modified' in response.headers
    assert 'etag' in response.headers
    assert response.text.count('<item>') == 5


def test_mime_type_follows_format(client: TestClient):
    response = client.get('/feed.php', params={'type': 'atom1'})
    assert response.headers['content-type'] == 'application/atom+xml'
    response = client.get('/feed.php')
    assert response.headers['content-type'] == 'application/xml'


def test_second_request_is_served_from_cache(client: TestClient, changelog):
    first = client.get('/feed.php')
    second = client.get('/feed.php')
    assert first.content == second.content
    assert len(changelog.calls) == 1


def test_purge_always_rebuilds(client: TestClient, changelog):
    client.get('/feed.php')
    client.get('/feed.php', params={'purge': '1'})
    client.get('/feed.php', params={'purge': '1'})
    assert len(changelog.calls) == 3


def test_different_options_use_different_entries(client: TestClient, changelog):
    client.get('/feed.php', params={'type': 'rss2'})
    client.get('/feed.php', params={'type': 'atom1'})
    assert len(changelog.calls) == 2


def test_changed_config_file_forces_rebuild(
    wiki, config, five_changed_pages, changelog, tmp_path: Path
):
    config_file = tmp_path / 'local.conf'
    config_file.write_text('')
    past = time.time() - 3600
    os.utime(config_file, (past, past))
    client = make_client(wiki, dataclasses.replace(config, config_files=(config_file,)))

    client.get('/feed.php')
    client.get('/feed.php')
    assert len(changelog.calls) == 1

    future = time.time() + 3600
    os.utime(config_file, (future, future))
    client.get('/feed.php')
    assert len(changelog.calls) == 2


def test_conditional_request(client: TestClient, changelog):
    first = client.get('/feed.php')
    response = client.get('/feed.php', headers={'If-None-Match': first.headers['etag']})
    assert response.status_code == 304
    assert response.content == b''

    response = client.get(
        '/feed.php', headers={'If-Modified-Since': first.headers['last-modified']}
    )
    assert response.status_code == 304
    assert len(changelog.calls) == 1


def test_stale_validator_gets_document(client: TestClient):
    client.get('/feed.php')
    response = client.get('/feed.php', headers={'If-None-Match': '"outdated"'})
    assert response.status_code == 200
    assert response.content


def test_debug_header(wiki, config, five_changed_pages):
    client = make_client(wiki, dataclasses.replace(config, allowdebug=True))
    assert 'x-cacheused' not in client.get('/feed.php').headers
    assert client.get('/feed.php').headers['x-cacheused'].endswith('.feed')


def test_disabled_feed(wiki, config):
    client = make_client(wiki, dataclasses.replace(config, feed_enabled=False))
    response = client.get('/feed.php')
    assert response.status_code == 404
    assert response.text == '<error>RSS feed is disabled.</error>'


def test_build_failure_is_not_cached(wiki, config, five_changed_pages):
    async def broken(page_id):
        raise RuntimeError('index <corrupt>')

    wiki.pages.get_metadata = broken
    client = make_client(wiki, config)
    response = client.get('/feed.php')
    assert response.status_code == 500
    assert response.text == '<error>index &lt;corrupt&gt;</error>'
    assert not config.cache_dir.exists() or not any(config.cache_dir.rglob('*.feed'))


def test_item_limit_zero(client: TestClient):
    response = client.get('/feed.php', params={'num': '0', 'type': 'rss2'})
    assert response.status_code == 200
    assert '<item>' not in response.text
    assert '<channel>' in response.text


def test_hooks_are_consulted(wiki, config, five_changed_pages):
    hooks = Hooks()
    hooks.register('item_add', lambda item, record, options: record.id != 'wiki:page3')
    client = make_client(wiki, config, hooks)
    response = client.get('/feed.php', params={'type': 'rss2'})
    assert response.text.count('<item>') == 4
    assert 'wiki:page3' not in response.text


def test_control_characters_do_not_break_the_feed(
    wiki, config, five_changed_pages, pages, changelog
):
    changelog.records[0].summary = 'fix\x0c typo'
    pages.add('wiki:page5', text='line\x0cwith form feed', mtime=1_700_000_005)
    client = make_client(wiki, config)
    response = client.get('/feed.php', params={'type': 'rss2'})
    assert response.status_code == 200
    assert response.text.count('<item>') == 5
    assert 'wiki:page5 - fix typo' in response.text

    response = client.get('/feed.php', params={'type': 'rss2', 'content': 'diff'})
    assert response.status_code == 200
    assert 'linewith form feed' in response.text
    assert '\x0c' not in response.text


def test_self_link_ignores_unknown_parameters(client: TestClient):
    first = client.get('/feed.php', params={'type': 'rss2', 'utm_source': 'evil'})
    second = client.get('/feed.php', params={'type': 'rss2'})
    assert first.content == second.content
    assert 'utm_source' not in second.text
    assert 'type=rss2' in second.text


def test_self_link_uses_resolved_options(client: TestClient):
    response = client.get('/feed.php', params={'type': 'atom1', 'linkto': 'garbage'})
    assert 'linkto=diff' in response.text
    assert 'garbage' not in response.text
