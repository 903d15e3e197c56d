"""Origin address helpers."""

from __future__ import annotations

import ipaddress
from typing import Iterable

DEFAULT_SUSPICIOUS_ADDRESSES: tuple[str, ...] = ("127.0.0.1", "::1")

UNKNOWN_ADDRESS = "unknown"


def normalise_address(value: str | None) -> str:
    """Canonical text form for an address; unparseable values are kept verbatim."""

    if not value:
        return UNKNOWN_ADDRESS
    text = value.strip()
    try:
        return str(ipaddress.ip_address(text))
    except ValueError:
        return text


def is_suspicious_address(value: str | None, deny_list: Iterable[str] = DEFAULT_SUSPICIOUS_ADDRESSES) -> bool:
    address = normalise_address(value)
    return address in {normalise_address(item) for item in deny_list}
