"""Tests for OptionRepository and option naming."""

from __future__ import annotations

import pytest

from dns_switcher.adapters.options import (
    DNS_OPTION_CODE,
    DhcpOption,
    OptionRepository,
    option_name_for,
    quote_value,
)
from dns_switcher.exceptions import ConflictError, DeviceRejectedError
from tests.conftest import MARKER


@pytest.fixture
def options(router) -> OptionRepository:
    return OptionRepository(router)


def test_option_name_for_ipv4():
    assert option_name_for("10.0.0.50") == "dns-10-0-0-50"


def test_option_name_is_deterministic_and_distinct():
    assert option_name_for("10.0.0.5") == option_name_for("10.0.0.5")
    assert option_name_for("10.0.0.5") != option_name_for("10.0.0.50")


def test_quote_value():
    assert quote_value("9.9.9.9") == "'9.9.9.9'"


def test_server_strips_quotes():
    option = DhcpOption.from_record({"name": "dns-x", "code": "6", "value": "'9.9.9.9'"})
    assert option.code == 6
    assert option.server == "9.9.9.9"


async def test_find_by_name(router, options):
    router.add_option("dns-10-0-0-50", "'9.9.9.9'", MARKER)
    option = await options.find_by_name("dns-10-0-0-50")
    assert option is not None
    assert option.comment == MARKER
    assert await options.find_by_name("dns-10-0-0-51") is None


async def test_ensure_creates(router, options):
    await options.ensure("dns-10-0-0-50", DNS_OPTION_CODE, "'9.9.9.9'", MARKER)

    option = router.option("dns-10-0-0-50")
    assert option["code"] == "6"
    assert option["value"] == "'9.9.9.9'"
    assert option["comment"] == MARKER


async def test_ensure_updates_existing_value(router, options):
    router.add_option("dns-10-0-0-50", "'8.8.8.8'", MARKER)

    await options.ensure("dns-10-0-0-50", DNS_OPTION_CODE, "'9.9.9.9'", MARKER)

    assert router.option("dns-10-0-0-50")["value"] == "'9.9.9.9'"
    assert len(router.options) == 1
    assert router.command_names == [
        "/ip/dhcp-server/option/add",
        "/ip/dhcp-server/option/print",
        "/ip/dhcp-server/option/set",
    ]


async def test_ensure_claims_unset_comment(router, options):
    router.add_option("dns-10-0-0-50", "'8.8.8.8'")

    await options.ensure("dns-10-0-0-50", DNS_OPTION_CODE, "'9.9.9.9'", MARKER)

    assert router.option("dns-10-0-0-50")["comment"] == MARKER


async def test_ensure_refuses_foreign_option(router, options):
    router.add_option("dns-10-0-0-50", "'8.8.8.8'", "Admin")

    with pytest.raises(ConflictError, match="Admin"):
        await options.ensure("dns-10-0-0-50", DNS_OPTION_CODE, "'9.9.9.9'", MARKER)

    assert router.option("dns-10-0-0-50")["value"] == "'8.8.8.8'"


async def test_ensure_reraises_unrelated_trap(router, options):
    router.trap_on["/ip/dhcp-server/option/add"] = "failure: invalid value"
    with pytest.raises(DeviceRejectedError, match="invalid value"):
        await options.ensure("dns-10-0-0-50", DNS_OPTION_CODE, "'9.9.9.9'", MARKER)


async def test_remove(router, options):
    router.add_option("dns-10-0-0-50", "'9.9.9.9'", MARKER)
    await options.remove("dns-10-0-0-50")
    assert router.options == []


async def test_remove_absent_is_success(router, options):
    await options.remove("dns-10-0-0-50")
    assert router.mutating_commands == []
