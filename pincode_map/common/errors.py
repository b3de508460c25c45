"""Domain errors and failure typing."""


class PincodeMapError(Exception):
    """Base class for pincode map failures."""

    error_code = "PINCODE_MAP_ERROR"


class ConfigError(PincodeMapError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(PincodeMapError):
    """Raised when input or output contracts are broken."""

    error_code = "CONTRACT_ERROR"


class StageError(PincodeMapError):
    """Raised for stage failures that should halt the run."""

    error_code = "STAGE_ERROR"


class StorageError(PincodeMapError):
    """Raised when the durable key-value storage cannot be written."""

    error_code = "STORAGE_ERROR"


class GeocodeError(PincodeMapError):
    """Raised when an external lookup returns an unusable payload."""

    error_code = "GEOCODE_ERROR"
