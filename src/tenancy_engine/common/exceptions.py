"""Tenancy-Engine exception hierarchy."""


class TenancyError(Exception):
    """Base exception for all tenancy errors."""

    def __init__(self, message: str = "", code: str = "TENANCY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidEntityIdError(TenancyError):
    """Raised when an entity id cannot be mapped to a safe schema name."""

    def __init__(self, message: str = "Invalid entity id"):
        super().__init__(message, code="INVALID_ENTITY_ID")


class InvalidSchemaNameError(TenancyError):
    """Raised when a schema name fails the tenant namespace allow-list."""

    def __init__(self, message: str = "Invalid schema name"):
        super().__init__(message, code="INVALID_SCHEMA_NAME")


class InvalidStatusError(TenancyError):
    """Raised when a status change targets a value callers may not set."""

    def __init__(self, message: str = "Invalid tenant status"):
        super().__init__(message, code="INVALID_STATUS")


class TenantProvisioningError(TenancyError):
    """Raised when a tenant namespace could not be created or dropped."""

    def __init__(self, message: str = "Tenant provisioning failed"):
        super().__init__(message, code="PROVISIONING_FAILED")
