"""Model lifecycle exceptions."""


class ModelError(Exception):
    """Base model lifecycle error."""
    pass


class ModelNotFoundError(ModelError):
    """Model id or name is not in the catalog."""
    pass


class ModelConfigNotFoundError(ModelError):
    """Model has no configuration row."""
    pass


class ModelValidationError(ModelError):
    """Request violates a catalog rule (bad status, bad transition, empty update)."""
    pass


class ModelDisabledError(ModelError):
    """Model exists but has been disabled by an administrator."""
    pass


class ModelUnavailableError(ModelError):
    """Model exists but is not in the available state."""
    pass


class RemoteUnavailableError(ModelError):
    """The inference server (or its public library) could not be reached."""
    pass


class CatalogStoreError(ModelError):
    """The catalog database failed."""
    pass
