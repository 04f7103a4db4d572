import datetime
import email
import html
import re
from email.utils import formatdate
from typing import Any
from urllib.parse import quote, urlparse
from xml.sax.saxutils import escape, quoteattr

from aiofiles.threadpool.text import AsyncTextIOWrapper

utc = datetime.timezone.utc

# characters XML 1.0 does not allow, tab and newlines excepted
CONTROL_CHARS_RE = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F]')


class UnserializableContentError(ValueError):
    pass


class AsyncXMLGenerator:
    """
    Asynchronous content handler writing into an aiofiles text file.
    Adapted from xml.sax.saxutils.XMLGenerator.
    """

    def __init__(self, out: AsyncTextIOWrapper, encoding: str = 'utf-8'):
        self._write = out.write
        self._flush = out.flush
        self._encoding = encoding

    async def startDocument(self) -> None:
        await self._write(f'<?xml version="1.0" encoding="{self._encoding}"?>\n')

    async def endDocument(self) -> None:
        await self._flush()

    async def startElement(self, name: str, attrs: dict) -> None:
        await self._write('<' + name)
        for attr_name, value in attrs.items():
            await self._write(f' {attr_name}={quoteattr(str(value))}')
        await self._write('>')

    async def endElement(self, name: str) -> None:
        await self._write(f'</{name}>')

    async def emptyElement(self, name: str, attrs: dict) -> None:
        await self._write('<' + name)
        for attr_name, value in attrs.items():
            await self._write(f' {attr_name}={quoteattr(str(value))}')
        await self._write('/>')

    async def characters(self, content: Any) -> None:
        """
        Escape &, <, and > in a string of content.
        """
        if content:
            if isinstance(content, bytes):
                content = content.decode(self._encoding)
            await self._write(escape(content))


class SimplerXMLGenerator(AsyncXMLGenerator):
    async def addQuickElement(
        self, name: str, contents: Any = None, attrs: dict | None = None
    ) -> None:
        """
        Convenience method for adding an element with no children.
        Elements without contents are written in the short form.
        """
        if attrs is None:
            attrs = {}
        if contents is None or contents == '':
            await self.emptyElement(name, attrs)
            return
        await self.startElement(name, attrs)
        await self.characters(contents)
        await self.endElement(name)

    async def characters(self, content: str) -> None:
        """
        Raise exception of content has control chars.
        """
        if content and CONTROL_CHARS_RE.search(content):
            # Control chars are not allowed in XML 1.0
            # See http://www.w3.org/International/questions/qa-controls
            raise UnserializableContentError(
                'Control characters are not supported in XML 1.0'
            )
        await super().characters(content)


def iri_to_uri(iri: str | None) -> str | None:
    """
    Convert an Internationalized Resource Identifier (IRI) portion to a URI
    portion that is suitable for inclusion in a URL.

    This is the algorithm from section 3.1 of RFC 3987, slightly simplified
    since the input is assumed to be a string rather than an arbitrary byte
    stream. Reserved and unreserved characters of RFC 3986 and the % sign
    are left untouched.
    """
    if iri is None:
        return iri
    return quote(iri, safe="/#%[]=:;$&()+,!?*@'~")


def http_date(epoch_seconds: float | None = None) -> str:
    """
    Format the time to match the RFC1123 date format as specified by HTTP
    RFC7231 section 7.1.1.1, e.g. 'Wdy, DD Mon YYYY HH:MM:SS GMT'.
    """
    return formatdate(epoch_seconds, usegmt=True)


def rfc2822_date(date_time: datetime.datetime) -> str:
    return email.utils.format_datetime(date_time)


def rfc3339_date(date_time: datetime.datetime) -> str:
    return date_time.isoformat() + ('Z' if date_time.utcoffset() is None else '')


def from_timestamp(epoch_seconds: float | None) -> datetime.datetime | None:
    """
    Convert epoch seconds to an aware UTC datetime.
    Zero and None both mean "no date".
    """
    if not epoch_seconds:
        return None
    return datetime.datetime.fromtimestamp(epoch_seconds, tz=utc)


def get_tag_uri(url: str, date: datetime.datetime | None) -> str:
    """
    Create a TagURI.

    See:
    https://web.archive.org/web/20110514113830/http://diveintomark.org/archives/2004/05/28/howto-atom-id
    """
    bits = urlparse(url)
    d = ''
    if date is not None:
        d = ',' + date.strftime('%Y-%m-%d')
    return f'tag:{bits.hostname}{d}:{bits.path}/{bits.fragment}'


def to_str(s: Any) -> str | None:
    return str(s) if s is not None else s


def strip_control_chars(value: str | None) -> str | None:
    """
    Drop characters that cannot be serialized in XML 1.0.
    """
    if value is None:
        return value
    return CONTROL_CHARS_RE.sub('', value)


def strip_tags(value: str) -> str:
    """
    Remove markup from a string, leaving the text behind.
    """
    return re.sub(r'<[^>]*>', '', value)


def hsc(value: Any) -> str:
    """
    Escape a value for use in HTML text and double quoted attributes.
    """
    return html.escape(str(value), quote=True)


def clean_id(raw_id: str | None) -> str:
    """
    Normalise a page or namespace id: lowercase, ':' as separator,
    whitespace turned into underscores and no leading/trailing separators.
    """
    if not raw_id:
        return ''
    value = raw_id.strip().lower()
    value = re.sub(r'[/;]', ':', value)
    value = re.sub(r'\s+', '_', value)
    value = re.sub(r':{2,}', ':', value)
    return value.strip(':_')


def get_ns(item_id: str) -> str:
    """
    Return the namespace part of an id, or an empty string for root items.
    """
    ns, sep, _ = item_id.rpartition(':')
    return ns if sep else ''


def natural_key(value: str) -> list:
    """
    Sort key ordering embedded numbers by value ('page2' < 'page10').
    """
    return [
        int(part) if part.isdigit() else part.lower()
        for part in re.split(r'(\d+)', value)
    ]


def obfuscate(address: str, mode: str) -> str:
    """
    Hide an email address from harvesters.

    ``visible`` spells out the separators, ``hex`` turns every character into
    a numeric character reference, anything else returns the address as is.
    """
    if mode == 'visible':
        return (
            address.replace('@', ' [at] ')
            .replace('.', ' [dot] ')
            .replace('-', ' [dash] ')
        )
    if mode == 'hex':
        return ''.join(f'&#x{ord(char):x};' for char in address)
    return address
