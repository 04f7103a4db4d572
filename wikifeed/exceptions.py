class FeedError(Exception):
    """
    Base class for feed generation errors.
    """


class FeatureDisabled(FeedError):
    """
    Feed generation is turned off for the site.
    """


class InvalidParameter(FeedError):
    """
    A request parameter holds a value outside its allowed set.
    The options resolver replaces such values with their defaults.
    """

    def __init__(self, name: str, value: object) -> None:
        super().__init__(f'Invalid value {value!r} for parameter {name!r}')
        self.name = name
        self.value = value


class BuildFailure(FeedError):
    """
    Building or rendering the feed failed; nothing is cached.
    """


class MissingContent(FeedError):
    """
    The page or media file backing a record no longer exists.
    """

    def __init__(self, item_id: str) -> None:
        super().__init__(f'Content for {item_id!r} does not exist')
        self.item_id = item_id
