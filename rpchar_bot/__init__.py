"""Character relay bot: cached models with deferred write-back to SQL."""

__version__ = "0.1.0"
