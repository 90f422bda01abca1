from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlencode

from address_capture.core.errors import (
    ConfigurationError,
    CountryNotAllowed,
    FieldValidationError,
    UpstreamError,
)
from address_capture.core.messages import FlowMessages
from address_capture.core.models import (
    CANT_CONNECT,
    DEFAULT_SUB_STEP,
    NO_SELECTION,
    NOT_FOUND,
    SUB_STEPS,
    FieldSpec,
    SelectOption,
    StepConfig,
    StepResult,
    SubStep,
)
from address_capture.core.text import FORMATTERS, is_uk_postcode, join_lines, split_lines
from address_capture.flow.session import AddressSession, SessionStore
from address_capture.services.postcode_service import UNSUPPORTED_REGION, PostcodeClient

log = logging.getLogger(__name__)

Translate = Callable[[str], Optional[str]]

# outcomes of on_postcode_submit
FOUND = "found"
UNCHANGED = "unchanged"
SKIPPED = "skipped"


@dataclass
class FlowConfig:
    address_key: str
    allowed_countries: tuple[str, ...] = ()
    messages: FlowMessages = field(default_factory=FlowMessages)


@dataclass
class WizardRequest:
    """The slice of a host request the flow reads and writes."""

    session: SessionStore
    query: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)


class AddressCaptureFlow:
    """
    Postcode lookup -> address selection -> manual entry, as one wizard step.

    The host wizard owns this object and calls it at its extension points:
    ``configure``, ``get_values``, ``process``, ``validate``, ``save_values``,
    ``get_next_step``, ``get_error_step`` and ``locals``. ``submit`` and
    ``view`` run those in order for hosts that don't have their own pipeline.
    """

    def __init__(self, config: FlowConfig, *, service: PostcodeClient) -> None:
        if not config.address_key:
            raise ConfigurationError("address_key must be provided")
        self.config = config
        self.service = service
        self.key = config.address_key
        self.fields = self._build_fields(self.key)
        self.sub_steps = self._build_sub_steps(self.key)

    @staticmethod
    def _build_fields(key: str) -> dict[str, FieldSpec]:
        return {
            f"{key}-postcode": FieldSpec(
                name=f"{key}-postcode",
                validate=("required", "postcode"),
                formatters=("trim", "uppercase"),
            ),
            f"{key}-select": FieldSpec(name=f"{key}-select", validate=("selection",)),
            key: FieldSpec(name=key, validate=("required",), formatters=("trim", "hyphens")),
        }

    @staticmethod
    def _build_sub_steps(key: str) -> dict[str, StepConfig]:
        return {
            "postcode": StepConfig(step="postcode", fields=(f"{key}-postcode",)),
            "lookup": StepConfig(step="lookup", fields=(f"{key}-select",), template="address-lookup"),
            "address": StepConfig(step="address", fields=(key,), template="address"),
            "manual": StepConfig(step="manual", fields=(key,), template="address"),
        }

    def session(self, request: WizardRequest) -> AddressSession:
        return AddressSession(request.session, self.key)

    @staticmethod
    def current_step(request: WizardRequest) -> SubStep:
        step = request.query.get("step")
        return step if step in SUB_STEPS else DEFAULT_SUB_STEP  # type: ignore[return-value]

    # ── Host extension points ─────────────────────────────────────

    def configure(self, request: WizardRequest) -> StepConfig:
        step = self.current_step(request)
        request.query["step"] = step
        return self.sub_steps[step]

    def get_values(self, request: WizardRequest) -> dict[str, Any]:
        step = self.current_step(request)
        session = self.session(request)
        values: dict[str, Any] = {}

        if step == "manual":
            session.forget_postcode()
        elif step == "lookup":
            values["options"] = self.select_options(session)

        values.update({name: request.session.get(name) for name in self.sub_steps[step].fields})
        return values

    def process(self, request: WizardRequest) -> None:
        for name in self.sub_steps[self.current_step(request)].fields:
            if name not in request.values:
                continue
            value = "" if request.values[name] is None else str(request.values[name])
            for formatter in self.fields[name].formatters:
                value = FORMATTERS[formatter](value)
            request.values[name] = value

    def validate(self, request: WizardRequest) -> dict[str, FieldValidationError]:
        step = self.current_step(request)
        errors: dict[str, FieldValidationError] = {}

        for name in self.sub_steps[step].fields:
            error = self._validate_field(name, request.values.get(name), self.session(request))
            if error is not None:
                errors[name] = error

        if not errors and step == "postcode" and self.config.allowed_countries:
            key = f"{self.key}-postcode"
            error = self.on_validate_postcode(request.values[key], self.config.allowed_countries)
            if error is not None:
                errors[key] = error
        return errors

    def save_values(self, request: WizardRequest) -> None:
        step = self.current_step(request)
        session = self.session(request)

        if step == "postcode":
            postcode = request.values[f"{self.key}-postcode"]
            self.on_postcode_submit(session, postcode)
            session.postcode = postcode
        elif step == "lookup":
            selected = request.values[f"{self.key}-select"]
            session.selected = selected
            session.final_address = self.on_lookup_select(selected, self.candidate_values(session))
        else:
            session.final_address = self.on_manual_entry_submit(request.values[self.key])

    def get_next_step(self, request: WizardRequest, next_route: str) -> str:
        step = self.current_step(request)
        sub_step = self.determine_next_sub_step(step, self.session(request).has_addresses())
        if sub_step is None:
            return next_route
        return "?" + urlencode({**request.query, "step": sub_step})

    @staticmethod
    def get_error_step(request: WizardRequest, route: str) -> str:
        return f"{route}?{urlencode(request.query)}"

    def locals(self, request: WizardRequest, route: str, translate: Translate | None = None) -> dict[str, Any]:
        step = self.current_step(request)
        session = self.session(request)
        messages = self.config.messages

        def t(key: str, default: str | None) -> str | None:
            found = translate(key) if translate else None
            return found or default

        postcode_error = None
        message_key = None if step == "manual" else session.lookup_error
        if message_key:
            postcode_error = t(
                f"pages.address-lookup.postcode-api.{message_key}",
                messages.postcode_error.get(message_key),
            )

        return {
            "step": step,
            "template": self.sub_steps[step].template,
            "postcodeLabel": t(f"fields.{self.key}-postcode.label", messages.postcode_label),
            "route": route,
            "editLink": t("pages.address-lookup.edit", messages.change),
            "cantFind": t("pages.address-lookup.cantfind", messages.cant_find),
            "changePostcodeLink": self.change_postcode_link(request, route),
            "cantFindLink": self.cant_find_link(request, route),
            "postcodeError": postcode_error,
            "postcode": session.postcode,
            "section": route.lstrip("/"),
        }

    # ── Pipelines ─────────────────────────────────────────────────

    def submit(self, request: WizardRequest, *, route: str, next_route: str) -> StepResult:
        """Handle one POST: process, validate, save, then pick the redirect."""
        config = self.configure(request)
        self.process(request)
        errors = self.validate(request)
        if errors:
            return StepResult(step=config.step, redirect=self.get_error_step(request, route), errors=errors)
        self.save_values(request)
        return StepResult(step=config.step, redirect=self.get_next_step(request, next_route))

    def view(self, request: WizardRequest, *, route: str, translate: Translate | None = None) -> dict[str, Any]:
        """Handle one GET: everything a template needs for the current sub-step."""
        config = self.configure(request)
        values = self.get_values(request)
        return {
            "fields": list(config.fields),
            "values": values,
            **self.locals(request, route, translate),
        }

    def change_postcode_link(self, request: WizardRequest, route: str) -> str:
        return f"{route}?{urlencode({**request.query, 'step': 'postcode'})}"

    def cant_find_link(self, request: WizardRequest, route: str) -> str:
        return f"{route}?{urlencode({**request.query, 'step': 'manual'})}"

    # ── Sub-step operations ───────────────────────────────────────

    @staticmethod
    def determine_next_sub_step(step: SubStep, has_addresses: bool) -> SubStep | None:
        """Next sub-step after *step*, or None to leave for the wizard's next step."""
        if step == "postcode":
            return "lookup" if has_addresses else "address"
        return None

    def on_postcode_submit(self, session: AddressSession, postcode: str) -> str:
        """
        Look *postcode* up and record the outcome in the session.

        Leaves exactly one of: candidates stored, a lookup error stored, or
        both cleared. Never raises; an unreachable service is recorded as
        ``cant-connect`` so the user can enter the address by hand.
        """
        if postcode == session.postcode and session.has_usable_result():
            log.debug("Postcode %s unchanged, keeping previous lookup", postcode)
            return UNCHANGED

        try:
            addresses = self.service.lookup(postcode)
        except UpstreamError as e:
            if e.status == UNSUPPORTED_REGION:
                log.info("Skipping lookup for unsupported postcode %s", postcode)
                session.clear_lookup()
                return SKIPPED
            log.error("Postcode lookup error: Code: %s; Detail: %s", e.status, e.detail or e)
            session.set_lookup_error(CANT_CONNECT)
            return CANT_CONNECT
        except Exception:
            log.exception("Postcode lookup failed for %s", postcode)
            session.set_lookup_error(CANT_CONNECT)
            return CANT_CONNECT

        if addresses:
            session.set_addresses(addresses)
            return FOUND
        session.set_lookup_error(NOT_FOUND)
        return NOT_FOUND

    def on_validate_postcode(
        self, postcode: str, allowed_countries: Iterable[str]
    ) -> FieldValidationError | None:
        """Country check; anything but a definite mismatch lets the user through."""
        key = f"{self.key}-postcode"
        try:
            self.service.validate(postcode, allowed_countries)
        except CountryNotAllowed as e:
            return FieldValidationError(key, e.type)
        except UpstreamError as e:
            if e.status in (403, 404):
                log.info("Cannot determine country for %s (HTTP %s)", postcode, e.status)
            else:
                log.warning("Postcode validation unavailable for %s: %s", postcode, e)
        except Exception:
            log.exception("Postcode validation failed for %s", postcode)
        return None

    def on_lookup_select(self, selection: str | None, candidates: Iterable[str]) -> str:
        """Only values offered in the select (see ``select_options``) are accepted."""
        if not selection or selection == NO_SELECTION or selection not in set(candidates):
            raise FieldValidationError(f"{self.key}-select", "required")
        return split_lines(selection)

    @staticmethod
    def on_manual_entry_submit(text: str) -> str:
        return text

    @staticmethod
    def candidate_values(session: AddressSession) -> list[str]:
        return [join_lines(a.formatted_address) for a in session.addresses]

    def select_options(self, session: AddressSession) -> list[SelectOption]:
        formatted = self.candidate_values(session)
        count = f"{len(formatted)} address{'es' if len(formatted) > 1 else ''}"
        return [SelectOption(value=NO_SELECTION, label=count)] + [
            SelectOption(value=a, label=a) for a in formatted
        ]

    # ── Private helpers ───────────────────────────────────────────

    def _validate_field(self, name: str, value: Any, session: AddressSession) -> FieldValidationError | None:
        value = "" if value is None else str(value)
        for rule in self.fields[name].validate:
            if rule == "required" and not value.strip():
                return FieldValidationError(name, "required")
            if rule == "postcode" and not is_uk_postcode(value):
                return FieldValidationError(name, "postcode")
            if rule == "selection":
                try:
                    self.on_lookup_select(value, self.candidate_values(session))
                except FieldValidationError as e:
                    return e
        return None
