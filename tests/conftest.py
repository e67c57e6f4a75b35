"""Shared test fixtures for DNS Switcher."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dns_switcher.adapters.channel import Done, Fatal, Reply, Trap
from dns_switcher.config import Settings
from dns_switcher.services.device_session import DeviceSession
from dns_switcher.services.reconciler import DnsReconciler

MARKER = "DNS-Switcher-Managed"


class _Trapped(Exception):
    pass


@dataclass
class _Outcome:
    replies: list[dict[str, str]] = field(default_factory=list)
    ret: str | None = None


class FakeRouterOS:
    """In-memory router speaking the command channel protocol.

    Lease lookups match address prefixes the way a loose device-side filter
    would, so callers have to do their own exact matching.
    """

    def __init__(self):
        self.leases: list[dict[str, str]] = []
        self.options: list[dict[str, str]] = []
        self.dns: dict[str, str] = {"servers": "1.1.1.1,1.0.0.1"}
        self.identity = "test-router"
        self.commands: list[tuple[str, dict]] = []
        self.fatal: str | None = None
        self.trap_on: dict[str, str] = {}
        self._next_id = 1

    # -- Seeding ------------------------------------------------------------

    def _new_id(self) -> str:
        item_id = f"*{self._next_id:X}"
        self._next_id += 1
        return item_id

    def add_lease(
        self,
        address: str,
        *,
        mac: str = "",
        dynamic: bool = False,
        comment: str = "",
        dhcp_option: str = "",
    ) -> str:
        lease_id = self._new_id()
        record = {
            ".id": lease_id,
            "address": address,
            "dynamic": "true" if dynamic else "false",
            "dhcp-option": dhcp_option,
        }
        if mac:
            record["mac-address"] = mac
        if comment:
            record["comment"] = comment
        self.leases.append(record)
        return lease_id

    def add_option(self, name: str, value: str, comment: str = "", code: str = "6") -> str:
        option_id = self._new_id()
        record = {".id": option_id, "name": name, "code": code, "value": value}
        if comment:
            record["comment"] = comment
        self.options.append(record)
        return option_id

    # -- Inspection ---------------------------------------------------------

    def leases_for(self, address: str) -> list[dict[str, str]]:
        return [lease for lease in self.leases if lease["address"] == address]

    def option(self, name: str) -> dict[str, str] | None:
        return next((o for o in self.options if o["name"] == name), None)

    @property
    def command_names(self) -> list[str]:
        return [command for command, _ in self.commands]

    @property
    def mutating_commands(self) -> list[str]:
        return [c for c in self.command_names if not c.endswith("/print")]

    # -- Channel protocol ---------------------------------------------------

    async def send(self, command: str, attributes: dict | None = None):
        attributes = dict(attributes or {})
        self.commands.append((command, attributes))
        if self.fatal:
            yield Fatal(self.fatal)
            return
        if command in self.trap_on:
            yield Trap(self.trap_on[command])
            return
        try:
            outcome = self._dispatch(command, attributes)
        except _Trapped as exc:
            yield Trap(str(exc))
            return
        for record in outcome.replies:
            yield Reply(dict(record))
        yield Done({"ret": outcome.ret} if outcome.ret else {})

    def _dispatch(self, command: str, attrs: dict) -> _Outcome:
        path, _, verb = command.rpartition("/")
        if path == "/ip/dhcp-server/lease":
            return self._lease_command(verb, attrs)
        if path == "/ip/dhcp-server/option":
            return self._option_command(verb, attrs)
        if command == "/ip/dns/print":
            return _Outcome(replies=[dict(self.dns)])
        if command == "/system/identity/print":
            return _Outcome(replies=[{"name": self.identity}])
        raise _Trapped("no such command")

    @staticmethod
    def _query(attrs: dict) -> dict[str, str]:
        terms = {}
        for term in attrs.get(".query", []):
            key, _, value = term.partition("=")
            terms[key] = value
        return terms

    def _lease_by_id(self, lease_id: str) -> dict[str, str]:
        for lease in self.leases:
            if lease[".id"] == lease_id:
                return lease
        raise _Trapped("no such item")

    def _lease_command(self, verb: str, attrs: dict) -> _Outcome:
        if verb == "print":
            prefix = self._query(attrs).get("address", "")
            return _Outcome(replies=[dict(l) for l in self.leases if l["address"].startswith(prefix)])
        if verb == "add":
            address = attrs["address"]
            if any(l["address"] == address and l["dynamic"] == "false" for l in self.leases):
                raise _Trapped("failure: already have static lease with this IP address")
            lease_id = self.add_lease(
                address,
                mac=attrs.get("mac-address", ""),
                comment=attrs.get("comment", ""),
                dhcp_option=attrs.get("dhcp-option", ""),
            )
            return _Outcome(ret=lease_id)
        if verb == "set":
            lease = self._lease_by_id(attrs["numbers"])
            if lease["dynamic"] == "true":
                raise _Trapped("failure: can not change dynamic lease")
            for key in ("comment", "dhcp-option"):
                if key in attrs:
                    lease[key] = attrs[key]
            return _Outcome()
        if verb == "remove":
            self.leases.remove(self._lease_by_id(attrs["numbers"]))
            return _Outcome()
        if verb == "make-static":
            self._lease_by_id(attrs["numbers"])["dynamic"] = "false"
            return _Outcome()
        raise _Trapped("no such command")

    def _option_by_ref(self, ref: str) -> dict[str, str]:
        for option in self.options:
            if ref in (option[".id"], option["name"]):
                return option
        raise _Trapped("no such item")

    def _option_command(self, verb: str, attrs: dict) -> _Outcome:
        if verb == "print":
            name = self._query(attrs).get("name")
            return _Outcome(replies=[dict(o) for o in self.options if name is None or o["name"] == name])
        if verb == "add":
            if self.option(attrs["name"]) is not None:
                raise _Trapped("failure: already have such name")
            option_id = self.add_option(
                attrs["name"], attrs["value"], attrs.get("comment", ""), attrs.get("code", "")
            )
            return _Outcome(ret=option_id)
        if verb == "set":
            option = self._option_by_ref(attrs["numbers"])
            for key in ("value", "comment"):
                if key in attrs:
                    option[key] = attrs[key]
            return _Outcome()
        if verb == "remove":
            self.options.remove(self._option_by_ref(attrs["numbers"]))
            return _Outcome()
        raise _Trapped("no such command")


@pytest.fixture
def router() -> FakeRouterOS:
    return FakeRouterOS()


@pytest.fixture
def session(router: FakeRouterOS) -> DeviceSession:
    return DeviceSession(router)


@pytest.fixture
def reconciler(session: DeviceSession) -> DnsReconciler:
    return DnsReconciler(session, MARKER)


@pytest.fixture
def tmp_settings() -> Settings:
    """Settings for a router that is never contacted over the network."""
    return Settings(
        _env_file=None,
        mikrotik_host="192.0.2.1",
        mikrotik_username="admin",
        mikrotik_password="secret",
        custom_dns="9.9.9.9",
        app_comment=MARKER,
        trust_proxy_headers=True,
        ip_allowlist="",
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def app_client(tmp_settings: Settings, router: FakeRouterOS):
    """AsyncClient backed by the real FastAPI app wired to the fake router."""
    from dns_switcher.main import create_app

    app = create_app(settings=tmp_settings, channel=router)

    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


def client_headers(ip: str) -> dict[str, str]:
    """Headers that make the request appear to come from ``ip``."""
    return {"X-Real-IP": ip}
