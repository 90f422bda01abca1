from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

from fastmcp import FastMCP
from pydantic import BaseModel, Field

from address_capture.app.container import Container
from address_capture.core.errors import CountryNotAllowed, UpstreamError
from address_capture.flow.address_flow import WizardRequest
from address_capture.flow.session import InMemorySession

log = logging.getLogger(__name__)

DEFAULT_ROUTE = "/address"
DEFAULT_NEXT_ROUTE = "/next"


class AddressStepArgs(BaseModel):
    submission_id: str = Field(..., min_length=1, description="Identifies one in-progress form submission")
    step: str | None = Field(None, description="postcode | lookup | address | manual (default: postcode)")
    values: dict[str, str] = Field(default_factory=dict, description="Submitted form fields")
    route: str = Field(DEFAULT_ROUTE, description="Route of the address step in the host wizard")
    next_route: str = Field(DEFAULT_NEXT_ROUTE, description="Where the wizard goes once an address is stored")


class PostcodeArgs(BaseModel):
    postcode: str = Field(..., min_length=1)
    allowed_countries: list[str] = Field(default_factory=list)


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class AddressTools:
    """Drives the flow for submissions kept in the container's session cache."""

    def __init__(self, container: Container) -> None:
        self._flow = container.flow
        self._sessions = container.sessions
        self._service = container.postcode_service

    def _session(self, submission_id: str) -> InMemorySession:
        session = self._sessions.get(submission_id)
        if not isinstance(session, InMemorySession):
            session = InMemorySession()
        # every access keeps an in-progress submission alive for another ttl
        self._sessions.set(submission_id, session)
        return session

    def _request(self, args: AddressStepArgs) -> WizardRequest:
        query = {"step": args.step} if args.step else {}
        return WizardRequest(session=self._session(args.submission_id), query=query, values=dict(args.values))

    def view(self, args: AddressStepArgs) -> dict[str, Any]:
        return _plain(self._flow.view(self._request(args), route=args.route))

    def submit(self, args: AddressStepArgs) -> dict[str, Any]:
        request = self._request(args)
        result = self._flow.submit(request, route=args.route, next_route=args.next_route)

        next_step = parse_qs(urlsplit(result.redirect).query).get("step", [None])[0]
        leaving = result.ok and result.redirect == args.next_route
        out = result.to_dict()
        out["next_step"] = None if leaving else next_step
        out["complete"] = leaving
        if leaving:
            out["address"] = self._flow.session(request).final_address
        return out

    def session_state(self, submission_id: str) -> dict[str, Any]:
        return self._session(submission_id).to_dict()

    def lookup(self, args: PostcodeArgs) -> dict[str, Any]:
        try:
            addresses = self._service.lookup(args.postcode)
        except UpstreamError as e:
            log.warning("lookup_postcode failed for %s: %s", args.postcode, e)
            return {"addresses": [], "error": {"status": e.status, "message": str(e)}}
        return {"addresses": [a.formatted_address for a in addresses], "error": None}

    def validate(self, args: PostcodeArgs) -> dict[str, Any]:
        try:
            self._service.validate(args.postcode, args.allowed_countries)
        except CountryNotAllowed as e:
            return {"valid": False, "type": e.type, "country": e.country}
        except UpstreamError as e:
            # the flow lets these through; report it so callers can tell
            return {"valid": True, "type": None, "country": None, "status": e.status}
        return {"valid": True, "type": None, "country": None}


def register_address_tools(mcp: FastMCP, container: Container) -> None:
    tools = AddressTools(container)

    @mcp.tool(
        name="address_step",
        description=(
            "Submit one sub-step of the address capture flow (postcode, lookup, address, manual) "
            "for a submission. Returns the redirect, any field errors and the next sub-step."
        ),
    )
    def address_step(
        submission_id: str,
        step: str | None = None,
        values: dict[str, str] | None = None,
        route: str = DEFAULT_ROUTE,
        next_route: str = DEFAULT_NEXT_ROUTE,
    ) -> dict[str, Any]:
        args = AddressStepArgs(
            submission_id=submission_id,
            step=step,
            values=values or {},
            route=route,
            next_route=next_route,
        )
        return tools.submit(args)

    @mcp.tool(
        name="address_view",
        description="Fields, select options and messages for the current sub-step of a submission.",
    )
    def address_view(submission_id: str, step: str | None = None, route: str = DEFAULT_ROUTE) -> dict[str, Any]:
        return tools.view(AddressStepArgs(submission_id=submission_id, step=step, route=route))

    @mcp.tool(
        name="lookup_postcode",
        description="Look up the addresses for a UK postcode.",
    )
    def lookup_postcode(postcode: str) -> dict[str, Any]:
        return tools.lookup(PostcodeArgs(postcode=postcode))

    @mcp.tool(
        name="validate_postcode",
        description="Check that a UK postcode lies in one of the allowed countries (e.g. England, Wales).",
    )
    def validate_postcode(postcode: str, allowed_countries: list[str]) -> dict[str, Any]:
        return tools.validate(PostcodeArgs(postcode=postcode, allowed_countries=allowed_countries))
