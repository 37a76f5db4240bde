class SmartWeatherError(Exception):
    """Base class for errors raised by the SmartThings client and token code."""


class NotAuthorizedError(SmartWeatherError):
    """No usable credential; the user has to authorize again."""


class TokenRequestError(SmartWeatherError):
    """The token endpoint rejected a request or could not be reached."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        detail = f"{base} (HTTP {self.status})"
        if self.body:
            detail = f"{detail}: {self.body[:200]}"
        return detail


class AuthExchangeError(TokenRequestError):
    pass


class RefreshError(TokenRequestError):
    pass


class NetworkError(SmartWeatherError):
    """Transport failure talking to the device API."""


class ApiError(SmartWeatherError):
    def __init__(self, message: str, status: int, body: str = ""):
        super().__init__(f"{message} (HTTP {status})")
        self.status = status
        self.body = body


class DeviceNotFoundError(SmartWeatherError):
    """No device exposes the weather capabilities the dashboard needs."""
