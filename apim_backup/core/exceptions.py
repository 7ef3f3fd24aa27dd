class ApimBackupError(Exception):
    """Base class for all backup job exceptions."""


class ConfigError(ApimBackupError):
    """Raised for missing/malformed configuration."""


class AuthenticationError(ApimBackupError):
    """Raised when no credential or access token can be obtained."""


class StorageError(ApimBackupError):
    """Raised when a container or blob operation fails."""


class BackupOperationError(ApimBackupError):
    """Raised when the API Management backup operation fails or times out."""


__all__ = [
    "ApimBackupError",
    "ConfigError",
    "AuthenticationError",
    "StorageError",
    "BackupOperationError",
]
