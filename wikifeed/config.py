"""Site-wide feed policy.

`FeedConfig` replaces ambient global configuration: it is built once
(usually from the environment) and passed to every component.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

ENV_PREFIX = 'WIKIFEED_'

ALLOWED_SHOWUSERAS = {'loginname', 'username', 'username_link', 'email', 'email_link'}
ALLOWED_MAILGUARD = {'', 'none', 'visible', 'hex'}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {'1', 'true', 'yes', 'on', 'y'}


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(maximum, value))


@dataclass(frozen=True)
class FeedConfig:
    title: str = 'Wiki'
    tagline: str = ''
    base_url: str = 'http://localhost/'
    language: str | None = None

    # request defaults
    rss_type: str = 'rss1'
    rss_linkto: str = 'diff'
    rss_content: str = 'abstract'
    rss_media: str = 'both'
    recent: int = 20
    # max age of a cached feed in seconds, 0 disables expiry
    rss_update: int = 5 * 60

    # item policy
    rss_show_summary: bool = True
    rss_show_deleted: bool = True
    useheading: bool = False
    useacl: bool = False
    showuseras: str = 'username'
    canonical: bool = False
    userewrite: bool = False
    mediarevisions: bool = True
    mailguard: str = 'visible'
    current_label: str = 'current'

    # features
    feed_enabled: bool = True
    search_enabled: bool = True
    allowdebug: bool = False

    cache_dir: Path = Path('data/cache')
    config_files: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def base_path(self) -> str:
        """
        Path component of the site base url, always ending with '/'.
        """
        path = urlparse(self.base_url).path or '/'
        return path if path.endswith('/') else path + '/'

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> 'FeedConfig':
        """
        Build a configuration from WIKIFEED_* variables, e.g.
        WIKIFEED_TITLE, WIKIFEED_RSS_UPDATE or WIKIFEED_CONFIG_FILES
        (paths separated by os.pathsep). Missing or malformed values keep
        their defaults.
        """
        env = os.environ if env is None else env
        defaults = cls()
        values: dict = {}
        for name in cls.__dataclass_fields__:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            default = getattr(defaults, name)
            if isinstance(default, bool):
                values[name] = _parse_bool(raw)
            elif isinstance(default, int):
                try:
                    values[name] = _clamp(int(raw), 0, 10**9)
                except ValueError:
                    continue
            elif isinstance(default, Path):
                values[name] = Path(raw)
            elif name == 'config_files':
                values[name] = tuple(Path(p) for p in raw.split(os.pathsep) if p)
            else:
                values[name] = raw
        if values.get('showuseras', 'username') not in ALLOWED_SHOWUSERAS:
            del values['showuseras']
        if values.get('mailguard', 'visible') not in ALLOWED_MAILGUARD:
            del values['mailguard']
        return cls(**values)
