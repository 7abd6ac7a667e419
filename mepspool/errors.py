"""Pipeline errors and failure typing."""


class MepsPoolError(ValueError):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class SourceError(MepsPoolError):
    """Raised when an extract cannot be fetched or read."""

    error_code = "SOURCE_ERROR"


class SchemaError(MepsPoolError):
    """Raised when an extract does not carry the expected fields."""

    error_code = "SCHEMA_ERROR"


class LinkageError(MepsPoolError):
    """Raised when the linkage join cannot be resolved one-to-one."""

    error_code = "LINKAGE_ERROR"


class DataQualityError(MepsPoolError):
    """Raised for out-of-domain codes or duplicated records."""

    error_code = "DATA_QUALITY_ERROR"


class DesignError(MepsPoolError):
    """Raised when the survey design cannot be built from the data."""

    error_code = "DESIGN_ERROR"
