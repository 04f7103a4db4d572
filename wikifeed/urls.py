from typing import Any
from urllib.parse import quote

from .config import FeedConfig
from .utils import iri_to_uri


def build_query(params: dict[str, Any], separator: str = '&') -> str:
    """
    Encode parameters in order, skipping those that are None.
    """
    return separator.join(
        f'{quote(str(name))}={quote(str(value), safe=":")}'
        for name, value in params.items()
        if value is not None
    )


class UrlBuilder:
    """
    Absolute URLs of pages, media files and the media manager.
    """

    def __init__(self, config: FeedConfig) -> None:
        base = config.base_url
        self.base_url = base if base.endswith('/') else base + '/'
        self.userewrite = config.userewrite

    def _with_query(self, url: str, params: dict[str, Any], separator: str) -> str:
        query = build_query(params, separator)
        if not query:
            return url
        joiner = separator if '?' in url else '?'
        return f'{url}{joiner}{query}'

    def wiki_link(
        self, page_id: str, params: dict[str, Any] | None = None, separator: str = '&'
    ) -> str:
        params = params or {}
        if self.userewrite:
            url = self.base_url + (iri_to_uri(page_id) or '')
            return self._with_query(url, params, separator)
        return self._with_query(
            self.base_url + 'doku.php', {'id': page_id, **params}, separator
        )

    def media_link(
        self, media_id: str, params: dict[str, Any] | None = None, separator: str = '&'
    ) -> str:
        params = params or {}
        if self.userewrite:
            url = self.base_url + '_media/' + (iri_to_uri(media_id) or '')
            return self._with_query(url, params, separator)
        return self._with_query(
            self.base_url + 'lib/exe/fetch.php', {**params, 'media': media_id}, separator
        )

    def media_manager_url(self, params: dict[str, Any], separator: str = '&') -> str:
        return self._with_query(
            self.base_url + 'doku.php', {'do': 'media', **params}, separator
        )
