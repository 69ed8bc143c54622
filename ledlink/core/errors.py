"""Domain-specific errors for ledlink."""


class LedlinkError(Exception):
    """Base error for ledlink."""


class ProfileValidationError(LedlinkError):
    """Raised when a device profile does not conform to schema or semantics."""


class ProfileLoadError(LedlinkError):
    """Raised when reading profile sources fails."""


class ProfileSelectionError(LedlinkError):
    """Raised when a requested device profile does not exist."""


class EndpointNotFoundError(LedlinkError):
    """Raised when no discovered service/feature pair is usable for writes."""


class ColorParseError(LedlinkError, ValueError):
    """Raised on a malformed hex color string."""


class LengthExceededError(LedlinkError, ValueError):
    """Raised when a text payload does not fit the single-byte length field."""


class TransportError(LedlinkError):
    """Base transport error."""


class TransportUnavailableError(TransportError):
    """Raised when the BLE stack is absent or switched off."""


class TransportConnectError(TransportError):
    """Raised when the transport fails to open a link."""


class ConnectTimeoutError(TransportError):
    """Raised when no connection event arrives within the grace period."""


class DiscoveryFailedError(TransportError):
    """Raised when discovery yields no acceptable endpoint."""


class WriteRejectedError(TransportError):
    """Raised when the transport refuses or fails a characteristic write."""


class TransportTimeoutError(TransportError):
    """Raised when a transport operation does not complete in time."""
