from __future__ import annotations

import copy
from typing import Any, Iterable, Protocol

from address_capture.core.models import CANT_CONNECT, Address


class SessionStore(Protocol):
    """Per-submission key/value store owned by the host wizard."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def unset(self, keys: str | Iterable[str]) -> None: ...


class InMemorySession:
    """Dict-backed SessionStore; values are copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def unset(self, keys: str | Iterable[str]) -> None:
        if isinstance(keys, str):
            keys = [keys]
        for key in keys:
            self._data.pop(key, None)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


class AddressSession:
    """
    Typed view of the address keys inside a host session.

    All keys are namespaced by ``address_key``:
    ``{key}-postcode``, ``{key}-addresses``, ``{key}-postcodeApiMeta``,
    ``{key}-select`` and ``{key}`` itself for the final address.
    """

    def __init__(self, store: SessionStore, address_key: str) -> None:
        self.store = store
        self.key = address_key

    @property
    def postcode_key(self) -> str:
        return f"{self.key}-postcode"

    @property
    def addresses_key(self) -> str:
        return f"{self.key}-addresses"

    @property
    def meta_key(self) -> str:
        return f"{self.key}-postcodeApiMeta"

    @property
    def select_key(self) -> str:
        return f"{self.key}-select"

    # postcode

    @property
    def postcode(self) -> str | None:
        return self.store.get(self.postcode_key)

    @postcode.setter
    def postcode(self, value: str) -> None:
        self.store.set(self.postcode_key, value)

    # candidate addresses

    @property
    def addresses(self) -> list[Address]:
        raw = self.store.get(self.addresses_key) or []
        return [Address.from_payload(item) for item in raw if isinstance(item, dict)]

    def set_addresses(self, addresses: list[Address]) -> None:
        self.store.set(self.addresses_key, [a.to_dict() for a in addresses])
        self.store.unset(self.meta_key)

    def has_addresses(self) -> bool:
        return bool(self.store.get(self.addresses_key))

    # lookup error

    @property
    def lookup_error(self) -> str | None:
        return (self.store.get(self.meta_key) or {}).get("messageKey")

    def set_lookup_error(self, message_key: str) -> None:
        self.store.unset(self.addresses_key)
        self.store.set(self.meta_key, {"messageKey": message_key})

    def clear_lookup(self) -> None:
        self.store.unset([self.addresses_key, self.meta_key])

    def has_usable_result(self) -> bool:
        """True when a previous lookup left something worth keeping."""
        if self.has_addresses():
            return True
        error = self.lookup_error
        return error is not None and error != CANT_CONNECT

    # selection / final address

    @property
    def selected(self) -> str | None:
        return self.store.get(self.select_key)

    @selected.setter
    def selected(self, value: str) -> None:
        self.store.set(self.select_key, value)

    @property
    def final_address(self) -> str | None:
        return self.store.get(self.key)

    @final_address.setter
    def final_address(self, value: str) -> None:
        self.store.set(self.key, value)

    def forget_postcode(self) -> None:
        self.store.unset([self.postcode_key, self.meta_key])
