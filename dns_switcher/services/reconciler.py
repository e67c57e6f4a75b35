"""Apply, query and revert per-client DNS overrides on the router.

The router's own records are the only state. Every call re-reads the leases
for the client address, classifies them against the ownership marker and only
then mutates, all inside one device transaction. Records owned by anyone else
are never modified.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from dns_switcher.adapters.channel import CommandChannel, execute
from dns_switcher.adapters.leases import Lease
from dns_switcher.adapters.options import DNS_OPTION_CODE, option_name_for, quote_value
from dns_switcher.adapters.ownership import Ownership
from dns_switcher.exceptions import ConflictError, ValidationError
from dns_switcher.services.device_session import DeviceSession

logger = logging.getLogger(__name__)


class DnsSource(str, Enum):
    CLIENT = "client"
    GLOBAL = "global"
    NONE = "none"


class ClientStatus(str, Enum):
    DEFAULT = "DEFAULT"
    CUSTOM = "CUSTOM"
    UNMANAGED = "UNMANAGED"


@dataclass(frozen=True)
class DnsLookup:
    address: str
    source: DnsSource
    servers: str = ""
    option_name: str | None = None
    status: ClientStatus = ClientStatus.DEFAULT

    def describe(self) -> str:
        if self.source is DnsSource.NONE:
            return f"No DNS configured for client {self.address}"
        return self.servers


def _ipv4(value: str, what: str) -> str:
    try:
        return str(ipaddress.IPv4Address(value.strip()))
    except ValueError:
        raise ValidationError(f"Invalid {what}: {value!r}", {what: value}) from None


def _first(leases: list[Lease], marker: str, ownership: Ownership) -> Lease | None:
    return next((lease for lease in leases if lease.ownership(marker) is ownership), None)


def _unmarked_static(leases: list[Lease], marker: str) -> Lease | None:
    return next(
        (
            lease
            for lease in leases
            if not lease.dynamic and lease.ownership(marker) is Ownership.UNMANAGED
        ),
        None,
    )


def _status_of(leases: list[Lease], marker: str) -> ClientStatus:
    if _first(leases, marker, Ownership.MANAGED_BY_US):
        return ClientStatus.CUSTOM
    if _first(leases, marker, Ownership.MANAGED_BY_OTHER) or _unmarked_static(leases, marker):
        return ClientStatus.UNMANAGED
    return ClientStatus.DEFAULT


async def _read_global_dns(channel: CommandChannel) -> str:
    result = await execute(channel, "/ip/dns/print")
    for record in result.replies:
        servers = record.get("servers") or record.get("dynamic-servers")
        if servers:
            return servers
    return ""


class DnsReconciler:
    """The three client operations (query, apply, revert) plus status."""

    def __init__(
        self,
        session: DeviceSession,
        marker: str,
        lease_strategy: Literal["dedicated", "promote"] = "dedicated",
    ):
        self._session = session
        self._marker = marker
        self._lease_strategy = lease_strategy

    @property
    def marker(self) -> str:
        return self._marker

    async def get_current_dns(self, client_ip: str) -> DnsLookup:
        """Client-specific DNS if a lease links one, else the router's global DNS.

        The returned lookup also carries the client's status, taken from the
        same lease read.
        """
        address = _ipv4(client_ip, "client_ip")

        async with self._session.transaction("get_current_dns") as tx:
            leases = await tx.leases.find_all_by_address(address)
            status = _status_of(leases, self._marker)
            for lease in leases:
                option_name = lease.dns_option_name
                if not option_name:
                    continue
                option = await tx.options.find_by_name(option_name)
                if option is not None:
                    return DnsLookup(address, DnsSource.CLIENT, option.server, option_name, status)
                logger.warning(
                    "Lease %s for %s links missing option %s", lease.id, address, option_name
                )

            servers = await _read_global_dns(tx.channel)

        if servers:
            return DnsLookup(address, DnsSource.GLOBAL, servers, status=status)
        return DnsLookup(address, DnsSource.NONE, status=status)

    async def get_client_status(self, client_ip: str) -> ClientStatus:
        address = _ipv4(client_ip, "client_ip")
        async with self._session.transaction("get_client_status") as tx:
            leases = await tx.leases.find_all_by_address(address)
        return _status_of(leases, self._marker)

    async def apply_custom_dns(self, client_ip: str, dns_server: str) -> None:
        """Point the client at ``dns_server``. Safe to repeat."""
        address = _ipv4(client_ip, "client_ip")
        server = _ipv4(dns_server, "dns_server")
        option_name = option_name_for(address)

        async with self._session.transaction("apply_custom_dns") as tx:
            leases = await tx.leases.find_all_by_address(address)
            managed = _first(leases, self._marker, Ownership.MANAGED_BY_US)
            if managed is None:
                self._refuse_foreign_leases(address, leases)

            option = await tx.options.find_by_name(option_name)
            if option is not None and option.ownership(self._marker) is Ownership.MANAGED_BY_OTHER:
                raise self._option_conflict(address, option_name, option.comment)

            await tx.options.ensure(option_name, DNS_OPTION_CODE, quote_value(server), self._marker)

            if managed is not None:
                await tx.leases.update(
                    managed.id, dns_option_name=option_name, current_options=managed.dhcp_options
                )
                logger.info("Custom DNS %s refreshed for %s (lease %s)", server, address, managed.id)
                return

            if self._lease_strategy == "promote":
                # Includes a lease left static by an interrupted promote
                static = _unmarked_static(leases, self._marker)
                if static is not None:
                    await tx.leases.update(
                        static.id,
                        dns_option_name=option_name,
                        comment=self._marker,
                        current_options=static.dhcp_options,
                    )
                    logger.info("Custom DNS %s applied to %s by adopting lease %s", server, address, static.id)
                    return

            dynamic = next((lease for lease in leases if lease.dynamic and lease.mac_address), None)
            if dynamic is not None and self._lease_strategy == "promote":
                await tx.leases.convert_dynamic_to_static(dynamic.id)
                await tx.leases.update(
                    dynamic.id,
                    dns_option_name=option_name,
                    comment=self._marker,
                    current_options=dynamic.dhcp_options,
                )
                logger.info("Custom DNS %s applied to %s by promoting lease %s", server, address, dynamic.id)
                return

            # The dynamic lease stays; the router prefers the static one on renewal.
            mac_address = dynamic.mac_address if dynamic is not None else None
            lease_id = await tx.leases.create(address, mac_address, option_name, self._marker)
            logger.info("Custom DNS %s applied to %s (new lease %s)", server, address, lease_id)

    async def remove_custom_dns(self, client_ip: str) -> None:
        """Drop our lease and option for the client; nothing to drop is success."""
        address = _ipv4(client_ip, "client_ip")

        async with self._session.transaction("remove_custom_dns") as tx:
            leases = await tx.leases.find_all_by_address(address)
            managed = _first(leases, self._marker, Ownership.MANAGED_BY_US)
            if managed is None:
                foreign = _first(leases, self._marker, Ownership.MANAGED_BY_OTHER)
                if foreign is not None:
                    raise self._lease_conflict(address, foreign)
                logger.info("No custom DNS to remove for %s", address)
                return

            option_name = managed.dns_option_name
            option = None
            if option_name:
                option = await tx.options.find_by_name(option_name)
                if option is not None and option.ownership(self._marker) is Ownership.MANAGED_BY_OTHER:
                    raise self._option_conflict(address, option_name, option.comment)

            await tx.leases.remove(managed.id)
            if option is not None:
                await tx.options.remove(option.name)
            logger.info("Custom DNS removed for %s", address)

    def _refuse_foreign_leases(self, address: str, leases: list[Lease]) -> None:
        foreign = _first(leases, self._marker, Ownership.MANAGED_BY_OTHER)
        if foreign is None and self._lease_strategy != "promote":
            foreign = _unmarked_static(leases, self._marker)
        if foreign is not None:
            raise self._lease_conflict(address, foreign)

    def _lease_conflict(self, address: str, lease: Lease) -> ConflictError:
        kind = "dynamic" if lease.dynamic else "static"
        logger.warning(
            "Refusing to touch %s lease %s for %s (comment=%r)", kind, lease.id, address, lease.comment
        )
        return ConflictError(
            f"Client {address} has a {kind} lease with comment '{lease.comment}' "
            f"that is not managed by '{self._marker}'",
            {"client_ip": address, "leaseId": lease.id, "comment": lease.comment},
        )

    def _option_conflict(self, address: str, name: str, comment: str) -> ConflictError:
        logger.warning("Refusing to touch option %s for %s (comment=%r)", name, address, comment)
        return ConflictError(
            f"Client {address} has DHCP option '{name}' with comment '{comment}' "
            f"that is not managed by '{self._marker}'",
            {"client_ip": address, "name": name, "comment": comment},
        )
