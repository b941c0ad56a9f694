"""Custom exceptions for the snapwatch package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class RootNotFoundError(WatcherError):
    """Watched root folder does not exist."""
    pass


class WatcherClosedError(WatcherError):
    """Operation attempted on a watcher that has been closed."""
    pass


class ProviderError(WatcherError):
    """The native notification provider stopped delivering events."""
    pass


class RootVanishedError(ProviderError):
    """The watched root was deleted or moved away."""
    pass


class ProviderStoppedError(ProviderError):
    """The observer or one of its emitters died unexpectedly."""
    pass
