from __future__ import annotations

from dataclasses import dataclass, field

from address_capture.core.models import CANT_CONNECT, NOT_FOUND


def _postcode_errors() -> dict[str, str]:
    return {
        NOT_FOUND: "Sorry – we couldn’t find any addresses for that postcode, enter your address manually",
        CANT_CONNECT: (
            "Sorry – we couldn’t connect to the postcode lookup service at this time, "
            "enter your address manually"
        ),
    }


@dataclass(frozen=True)
class FlowMessages:
    """Fallback copy used when the host has no translation for a key."""

    cant_find: str = "I can't find the address in the list"
    change: str = "Change"
    postcode_label: str = "Postcode"
    postcode_error: dict[str, str] = field(default_factory=_postcode_errors)
