from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

SubStep = Literal["postcode", "lookup", "address", "manual"]

SUB_STEPS: tuple[str, ...] = ("postcode", "lookup", "address", "manual")
DEFAULT_SUB_STEP: SubStep = "postcode"

# value of the leading "N addresses" option in the lookup select
NO_SELECTION = "-1"

NOT_FOUND = "not-found"
CANT_CONNECT = "cant-connect"


@dataclass(frozen=True)
class Address:
    formatted_address: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> Address:
        return cls(formatted_address=str(item.get("formatted_address") or ""), raw=item)

    def to_dict(self) -> dict[str, Any]:
        # session stores the upstream shape so it survives serialisation
        return {**self.raw, "formatted_address": self.formatted_address}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    validate: tuple[str, ...] = ()
    formatters: tuple[str, ...] = ()


@dataclass(frozen=True)
class StepConfig:
    step: SubStep
    fields: tuple[str, ...]
    template: str | None = None


@dataclass(frozen=True)
class SelectOption:
    value: str
    label: str


@dataclass
class StepResult:
    step: SubStep
    redirect: str
    errors: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "redirect": self.redirect,
            "errors": {k: e.to_dict() for k, e in self.errors.items()},
        }
