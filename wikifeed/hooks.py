"""
Extension points of the feed pipeline.

Callbacks may be plain functions or coroutine functions.

* ``options_postprocess(options)`` may return a replacement FeedOptions.
* ``data_process(records, options)`` runs once before items are built;
  returning False skips the default per-record loop.
* ``item_add(item, record, options)`` runs before an item is appended;
  returning False drops that single item.
* ``item_added(item, record, options, added)`` runs after every attempt.
"""

from collections.abc import Callable
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .items import ChangeRecord, FeedItem
    from .options import FeedOptions

HOOK_POINTS = ('options_postprocess', 'data_process', 'item_add', 'item_added')


async def _call(callback: Callable, *args: Any) -> Any:
    result = callback(*args)
    if isawaitable(result):
        result = await result
    return result


class Hooks:
    def __init__(self) -> None:
        self._callbacks: dict[str, list[Callable]] = {
            point: [] for point in HOOK_POINTS
        }

    def register(self, point: str, callback: Callable) -> Callable:
        """
        Register a callback for one of HOOK_POINTS and return it unchanged.
        """
        if point not in self._callbacks:
            raise ValueError(f'Unknown hook point {point!r}')
        self._callbacks[point].append(callback)
        return callback

    def on(self, point: str) -> Callable[[Callable], Callable]:
        """
        Decorator form of register().
        """
        def decorator(callback: Callable) -> Callable:
            return self.register(point, callback)

        return decorator

    async def postprocess_options(self, options: 'FeedOptions') -> 'FeedOptions':
        for callback in self._callbacks['options_postprocess']:
            replaced = await _call(callback, options)
            if replaced is not None:
                options = replaced
        return options

    async def advise_data_process(
        self, records: list, options: 'FeedOptions'
    ) -> bool:
        proceed = True
        for callback in self._callbacks['data_process']:
            if await _call(callback, records, options) is False:
                proceed = False
        return proceed

    async def advise_item_add(
        self, item: 'FeedItem', record: 'ChangeRecord', options: 'FeedOptions'
    ) -> bool:
        for callback in self._callbacks['item_add']:
            if await _call(callback, item, record, options) is False:
                return False
        return True

    async def notify_item_added(
        self,
        item: 'FeedItem',
        record: 'ChangeRecord',
        options: 'FeedOptions',
        added: bool,
    ) -> None:
        for callback in self._callbacks['item_added']:
            await _call(callback, item, record, options, added)
