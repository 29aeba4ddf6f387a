"""Known EVM networks addressable by chain-selector name."""

from __future__ import annotations

from dataclasses import dataclass


class NetworkNotFound(LookupError):
    """Raised when the configured chain selector name is unknown."""


@dataclass(slots=True, frozen=True)
class Network:
    name: str
    chain_id: int
    selector: int
    is_testnet: bool


_NETWORKS: dict[str, Network] = {
    network.name: network
    for network in (
        Network("ethereum-testnet-sepolia", 11155111, 16015286601757825753, True),
        Network("ethereum-testnet-sepolia-base-1", 84532, 10344971235874465080, True),
        Network("ethereum-testnet-sepolia-arbitrum-1", 421614, 3478487238524512106, True),
        Network("ethereum-mainnet", 1, 5009297550715157269, False),
    )
}


def get_network(name: str, *, is_testnet: bool | None = None) -> Network:
    network = _NETWORKS.get(name)
    if network is None or (is_testnet is not None and network.is_testnet != is_testnet):
        raise NetworkNotFound(f"Network not found: {name}")
    return network


def available_networks() -> tuple[str, ...]:
    return tuple(sorted(_NETWORKS))
