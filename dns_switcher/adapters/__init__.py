"""RouterOS command channel and DHCP record adapters."""

from dns_switcher.adapters.channel import (
    CommandChannel,
    Done,
    Fatal,
    Reply,
    RouterOSRestChannel,
    Trap,
    execute,
)
from dns_switcher.adapters.leases import Lease, LeaseRepository
from dns_switcher.adapters.options import DhcpOption, OptionRepository
from dns_switcher.adapters.ownership import Ownership, classify

__all__ = [
    "CommandChannel",
    "DhcpOption",
    "Done",
    "Fatal",
    "Lease",
    "LeaseRepository",
    "OptionRepository",
    "Ownership",
    "Reply",
    "RouterOSRestChannel",
    "Trap",
    "classify",
    "execute",
]
