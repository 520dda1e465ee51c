"""
Network profiles
================

Connection parameters for the two BSC networks the contracts ship to, and the
compiler settings the artifacts are expected to be built with.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .errors import NetworkSelectionError


@dataclass(frozen=True)
class NetworkProfile:
    """Connection parameters for one network"""
    name: str
    url: str
    chain_id: int
    gas_price: int
    gas_limit: Optional[int]
    credential_source: str


@dataclass(frozen=True)
class CompilerSettings:
    version: str
    optimizer_enabled: bool
    optimizer_runs: int


COMPILER = CompilerSettings(version="0.8.3", optimizer_enabled=True, optimizer_runs=200)

DEFAULT_NETWORK = "bscmainnet"

NETWORKS: Dict[str, NetworkProfile] = {
    "bscmainnet": NetworkProfile(
        name="bscmainnet",
        url="https://bsc-dataseed.binance.org/",
        chain_id=56,
        gas_price=30_000_000_000,
        gas_limit=1_500_000,
        credential_source="mnemonic",
    ),
    # No fixed gas on testnet: each transaction is estimated
    "bsctestnet": NetworkProfile(
        name="bsctestnet",
        url="https://data-seed-prebsc-1-s2.binance.org:8545/",
        chain_id=97,
        gas_price=20_000_000_000,
        gas_limit=None,
        credential_source="mnemonicTest",
    ),
}


def get_network(name: Optional[str] = None) -> NetworkProfile:
    """
    Look up a network profile by name

    Args:
        name: Profile name; None or empty selects DEFAULT_NETWORK

    Returns:
        The matching NetworkProfile
    """
    key = (name or DEFAULT_NETWORK).strip()
    try:
        return NETWORKS[key]
    except KeyError:
        known = ", ".join(sorted(NETWORKS))
        raise NetworkSelectionError(f"Unknown network '{key}' (known: {known})") from None
