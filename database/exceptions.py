"""Database exception types."""


class DatabaseError(Exception):
    """Base class for database errors."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when schema files are invalid or a migration fails."""
    pass
