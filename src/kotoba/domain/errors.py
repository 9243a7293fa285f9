"""Exception hierarchy for Kotoba."""


class KotobaError(Exception):
    """Base class for all Kotoba errors."""


class LocalStoreError(KotobaError):
    """The local history blob could not be read or written."""


class RemoteStoreError(KotobaError):
    """A pull or push against the remote store failed."""


class InvalidQualityError(KotobaError, ValueError):
    """A review quality score outside 0..5."""
