import hashlib
from abc import ABC, abstractmethod
from email.utils import parsedate_to_datetime
from http import HTTPStatus

from starlette.endpoints import HTTPEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .cache import FeedCache
from .collaborators import Wiki
from .config import FeedConfig
from .creator import FeedCreator
from .exceptions import BuildFailure, FeatureDisabled
from .hooks import Hooks
from .logging_config import get_logger
from .options import FeedOptions, parse_bool, resolve_options
from .urls import build_query
from .utils import hsc, http_date

logger = get_logger(__name__)

FEED_HEADERS = {
    'Cache-Control': 'must-revalidate, post-check=0, pre-check=0',
    'Pragma': 'public',
    'X-Robots-Tag': 'noindex',
}


def conditional_headers(timestamp: float) -> dict[str, str]:
    """
    Validators for a document last modified at `timestamp`.
    """
    last_modified = http_date(int(timestamp))
    etag = hashlib.md5(last_modified.encode('ascii')).hexdigest()
    return {'Last-Modified': last_modified, 'ETag': f'"{etag}"'}


def is_not_modified(request: Request, validators: dict[str, str]) -> bool:
    """
    Tell whether the client copy described by the request validators is
    still current.
    """
    if_none_match = request.headers.get('if-none-match')
    if if_none_match is not None:
        tags = [tag.strip() for tag in if_none_match.split(',')]
        return '*' in tags or validators['ETag'] in tags
    if_modified_since = request.headers.get('if-modified-since')
    if not if_modified_since:
        return False
    try:
        since = parsedate_to_datetime(if_modified_since)
        modified = parsedate_to_datetime(validators['Last-Modified'])
    except (TypeError, ValueError):
        return False
    return modified <= since


def error_response(message: str, status: HTTPStatus) -> Response:
    return Response(
        f'<error>{hsc(message)}</error>', status_code=int(status), media_type='text/xml'
    )


class FeedEndpoint(HTTPEndpoint, ABC):
    """
    Base endpoint serving wiki feeds.
    Subclasses provide the collaborators through get_wiki().
    """

    config: FeedConfig = FeedConfig()
    hooks: Hooks | None = None

    @abstractmethod
    async def get_wiki(self, request: Request) -> Wiki:
        """
        Return the collaborators the feed is built from.
        """
        ...

    def get_user(self, request: Request) -> str:
        """
        Name of the authenticated user, empty for anonymous requests.
        """
        if 'user' not in request.scope:
            return ''
        user = request.user
        if not getattr(user, 'is_authenticated', False):
            return ''
        return user.display_name

    def cache_key(self, request: Request, options: FeedOptions) -> str:
        server = request.scope.get('server') or ('', None)
        port = request.url.port or server[1] or ''
        return '$'.join(
            [
                options.cache_key(),
                self.get_user(request),
                request.url.hostname or '',
                str(port),
            ]
        )

    def check_enabled(self) -> None:
        if not self.config.feed_enabled:
            raise FeatureDisabled('RSS feed is disabled.')

    async def get(self, request: Request) -> Response:
        """
        Serve the feed from cache when possible, build it otherwise.
        """
        try:
            self.check_enabled()
        except FeatureDisabled as exc:
            return error_response(str(exc), HTTPStatus.NOT_FOUND)

        config = self.config
        options = await resolve_options(request.query_params, config, self.hooks)
        cache = FeedCache(self.cache_key(request, options), config.cache_dir)
        headers = dict(FEED_HEADERS)

        purge = parse_bool(request.query_params.get('purge') or None)
        if await cache.use_cache(config.config_files, config.rss_update, purge):
            entry = await cache.retrieve()
            if entry is not None:
                headers.update(conditional_headers(entry.stored_at))
                if is_not_modified(request, headers):
                    return Response(
                        status_code=int(HTTPStatus.NOT_MODIFIED), headers=headers
                    )
                if config.allowdebug:
                    headers['X-CacheUsed'] = str(entry.path)
                logger.debug('Serving cached feed', key=cache.key)
                return Response(
                    entry.data, media_type=options.mime_type, headers=headers
                )

        wiki = await self.get_wiki(request)
        feed_url = str(request.url.replace(query=build_query(options.query_params())))
        try:
            document = await FeedCreator(options, config, wiki, self.hooks).build(
                feed_url=feed_url
            )
        except BuildFailure as exc:
            return error_response(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

        entry = await cache.store(document)
        headers.update(conditional_headers(entry.stored_at))
        return Response(document, media_type=options.mime_type, headers=headers)


def feed_endpoint(
    wiki: Wiki, config: FeedConfig | None = None, hooks: Hooks | None = None
) -> type[FeedEndpoint]:
    """
    Create an endpoint class serving feeds of a fixed set of collaborators,
    ready to be mounted with starlette.routing.Route.
    """

    class WikiFeedEndpoint(FeedEndpoint):
        async def get_wiki(self, request: Request) -> Wiki:
            return wiki

    WikiFeedEndpoint.hooks = hooks
    if config is not None:
        WikiFeedEndpoint.config = config
    return WikiFeedEndpoint
