"""
Hallway Exceptions

Custom exception classes for error handling
"""


class HallwayError(Exception):
    """Base Hallway exception"""

    def __init__(self, message: str, error_code: str = "HALL000", details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {
            "error_code": self.error_code,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# Hub errors
class HubError(HallwayError):
    """Hub error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "HUB001", details)


class HubStoppedError(HubError):
    """Hub event loop is not running"""

    def __init__(self, message: str = "Hub is not running", details: dict = None):
        super().__init__(message, details)
        self.error_code = "HUB002"


# Session errors
class SessionError(HallwayError):
    """Session error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "SESS001", details)


class QueueClosedError(SessionError):
    """Outbound queue already closed"""

    def __init__(self, identity: str, details: dict = None):
        message = f"Outbound queue closed: {identity}"
        super().__init__(message, details)
        self.error_code = "SESS002"
        self.identity = identity


# Client errors
class ClientError(HallwayError):
    """Client error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CLIENT001", details)


class ClientNotConnectedError(ClientError):
    """Client not connected error"""

    def __init__(self, message: str = "Client is not connected", details: dict = None):
        super().__init__(message, details)
        self.error_code = "CLIENT002"


# Configuration errors
class ConfigError(HallwayError):
    """Configuration error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CFG001", details)
