"""
Exceptions raised by the matching engine.

The HTTP layer maps ValidationError to 400 and every other MatchingError to 500.
"""


class MatchingError(Exception):
    pass


class ConfigurationError(MatchingError):
    pass


class InitializationError(MatchingError):
    """The embedding model could not be loaded. Not retried for the life of the process."""


class ModelLoadTimeoutError(InitializationError, TimeoutError):
    pass


class EncodingError(MatchingError):
    pass


class StorageError(MatchingError):
    pass


class SearchError(MatchingError):
    pass


class SearchTimeoutError(SearchError, TimeoutError):
    pass


class ValidationError(MatchingError):
    pass
