from __future__ import annotations


class AddressCaptureError(Exception):
    """Base error for address-capture."""


class ConfigurationError(AddressCaptureError):
    """Raised when the flow or its collaborators are wired incorrectly."""


class UpstreamError(AddressCaptureError):
    """Raised when the postcode API fails or cannot be reached."""

    def __init__(self, message: str, *, status: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail


class CountryNotAllowed(UpstreamError):
    """Raised when a postcode resolves to a country outside the allow-list."""

    def __init__(self, postcode: str, country: str) -> None:
        super().__init__(f"Postcode {postcode} is in {country}", status=418, detail=country)
        self.type = "country"
        self.postcode = postcode
        self.country = country


class FieldValidationError(AddressCaptureError):
    """A blocking validation failure tied to one form field."""

    def __init__(self, key: str, type: str) -> None:
        super().__init__(f"{key}: {type}")
        self.key = key
        self.type = type

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "type": self.type}
