"""Exception types raised by the scripting core."""


class ScripterError(RuntimeError):
    """Base class for failures that abort a scripting run."""


class ConfigurationError(ScripterError):
    """Raised when required settings are missing or invalid."""


class CatalogShapeError(ScripterError):
    """Raised when the catalog returns a value the renderer cannot handle."""


class OwnershipError(ScripterError, ValueError):
    """Raised when a model object is added to a second parent or twice to the same one."""
