"""Error kinds raised across the scan pipeline."""


class CatchDealError(Exception):
    """Base class for watcher errors."""


class NavigationTimeout(CatchDealError):
    """A page did not reach the required load milestone in time."""


class ParseFailure(CatchDealError):
    """No usable title or price could be read from a page."""


class ConnectionFailure(CatchDealError):
    """The debuggable browser endpoint could not be reached."""


class ConfigurationError(CatchDealError):
    """Start-up configuration is missing or unusable."""


class PersistenceError(CatchDealError):
    """A completed-transaction record could not be written."""
