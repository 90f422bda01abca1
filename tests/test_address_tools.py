from __future__ import annotations

import dataclasses

import pytest
from fastmcp import FastMCP

from address_capture.app.container import build_container
from address_capture.core.messages import FlowMessages
from address_capture.infra.cache import Cache
from address_capture.tools.address_tools import (
    AddressStepArgs,
    AddressTools,
    PostcodeArgs,
    register_address_tools,
)


@pytest.fixture()
def container(make_settings, transport):
    return build_container(make_settings(allowed_countries=("England",)), transport=transport)


@pytest.fixture()
def tools(container) -> AddressTools:
    return AddressTools(container)


def _postcode(tools, postcode, submission_id="sub-1"):
    return tools.submit(
        AddressStepArgs(submission_id=submission_id, step="postcode", values={"address-one-postcode": postcode})
    )


def test_import_server():
    import address_capture.server  # noqa: F401


def test_register_tools(container):
    register_address_tools(FastMCP("test"), container)


def test_postcode_without_results_lands_on_address_with_message(tools):
    out = _postcode(tools, "BN25 1XY")

    assert out["next_step"] == "address"
    assert out["redirect"] == "?step=address"
    assert out["complete"] is False

    view = tools.view(AddressStepArgs(submission_id="sub-1", step="address"))
    assert view["postcodeError"] == FlowMessages().postcode_error["not-found"]


def test_select_candidate_completes_step(tools):
    assert _postcode(tools, "CR0 2EU")["next_step"] == "lookup"

    view = tools.view(AddressStepArgs(submission_id="sub-1", step="lookup"))
    first = view["values"]["options"][1]["value"]
    out = tools.submit(
        AddressStepArgs(submission_id="sub-1", step="lookup", values={"address-one-select": first})
    )

    assert out["complete"] is True
    assert out["redirect"] == "/next"
    assert out["address"] == "Flat 1\n10 High Street\nCroydon\nCR0 2EU"


def test_change_postcode_returns_to_postcode_step(tools):
    _postcode(tools, "CR0 2EU")

    view = tools.view(AddressStepArgs(submission_id="sub-1", step="lookup"))
    assert view["changePostcodeLink"] == "/address?step=postcode"
    assert view["cantFindLink"] == "/address?step=manual"

    view = tools.view(AddressStepArgs(submission_id="sub-1", step="postcode"))
    assert view["step"] == "postcode"
    assert view["postcode"] == "CR0 2EU"


def test_cant_find_goes_to_manual_entry(tools):
    _postcode(tools, "CR0 2EU")

    view = tools.view(AddressStepArgs(submission_id="sub-1", step="manual"))
    out = tools.submit(
        AddressStepArgs(submission_id="sub-1", step="manual", values={"address-one": "1 Other Road\nLondon"})
    )

    assert view["template"] == "address"
    assert out["complete"] is True
    assert out["address"] == "1 Other Road\nLondon"
    assert "address-one-postcode" not in tools.session_state("sub-1")


def test_unsupported_region_lands_on_address_without_message(tools, api):
    out = _postcode(tools, "BT1 1AA")

    assert out["next_step"] == "address"
    assert not [r for r in api.requests if r.url.path == "/addresses"]
    view = tools.view(AddressStepArgs(submission_id="sub-1", step="address"))
    assert view["postcodeError"] is None


@pytest.mark.parametrize("postcode,kind", [("INVALID", "postcode"), ("CH5 1AB", "country")])
def test_rejected_postcode_stays_on_postcode_step(tools, postcode, kind):
    out = _postcode(tools, postcode)

    assert out["next_step"] == "postcode"
    assert out["redirect"] == "/address?step=postcode"
    assert out["errors"]["address-one-postcode"]["type"] == kind


def test_sessions_are_kept_per_submission(tools):
    _postcode(tools, "CR0 2EU", submission_id="a")
    _postcode(tools, "BN25 1XY", submission_id="b")

    assert "address-one-addresses" in tools.session_state("a")
    assert "address-one-addresses" not in tools.session_state("b")


def test_lookup_tool(tools):
    assert len(tools.lookup(PostcodeArgs(postcode="CR0 2EU"))["addresses"]) == 2

    out = tools.lookup(PostcodeArgs(postcode="BT1 1AA"))
    assert out["addresses"] == []
    assert out["error"]["status"] == 501


def test_validate_tool(tools):
    assert tools.validate(PostcodeArgs(postcode="CR0 2EU", allowed_countries=["england"]))["valid"] is True

    out = tools.validate(PostcodeArgs(postcode="CH5 1AB", allowed_countries=["England"]))
    assert out == {"valid": False, "type": "country", "country": "Wales"}

    out = tools.validate(PostcodeArgs(postcode="ZZ9 9ZZ", allowed_countries=["England"]))
    assert out["valid"] is True
    assert out["status"] == 404


def test_sessions_in_use_do_not_expire(container):
    now = [0.0]
    sessions = Cache(maxsize=10, ttl_seconds=60, timer=lambda: now[0])
    tools = AddressTools(dataclasses.replace(container, sessions=sessions))

    _postcode(tools, "CR0 2EU")
    now[0] = 50.0
    tools.view(AddressStepArgs(submission_id="sub-1", step="lookup"))
    now[0] = 100.0

    assert tools.session_state("sub-1")["address-one-postcode"] == "CR0 2EU"

    now[0] = 200.0
    assert tools.session_state("sub-1") == {}
