class DataNotFound(Exception):
    """Raised when a dataset directory holds neither legs.csv nor stops.csv."""


class ConfigError(Exception):
    """Raised when an analysis is requested with missing or invalid parameters."""
