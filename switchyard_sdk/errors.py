class SwitchyardClientError(Exception):
    """Base exception for all Switchyard SDK errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class SwitchyardAPIError(SwitchyardClientError):
    """Raised when the Switchyard API returns a 4xx or 5xx error."""
    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(f"{message} (Status: {status_code})")

class SwitchyardFeatureDisabledError(SwitchyardAPIError):
    """Raised when smart routing is disabled on the server (503)."""
    pass

class SwitchyardTimeoutError(SwitchyardClientError):
    """Raised when the request to the gateway times out."""
    pass

class SwitchyardConnectionError(SwitchyardClientError):
    """Raised when the client cannot connect to the Switchyard server."""
    pass
