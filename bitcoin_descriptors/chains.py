from enum import Enum

from embit.networks import NETWORKS


class Chain(Enum):
    """
    The blockchain network to use
    """
    MAIN = 0 #: Bitcoin Main network
    TEST = 1 #: Bitcoin Test network
    REGTEST = 2 #: Bitcoin Core Regression Test network
    SIGNET = 3 #: Bitcoin Signet

    def __str__(self) -> str:
        return self.name.lower()

    def __repr__(self) -> str:
        return str(self)

    @property
    def network(self) -> dict:
        """The embit parameters table (address prefixes, bech32 hrp, ...) for this chain."""
        if self == Chain.MAIN:
            return NETWORKS["main"]
        if self == Chain.REGTEST:
            return NETWORKS["regtest"]
        if self == Chain.SIGNET:
            return NETWORKS.get("signet", NETWORKS["test"])
        return NETWORKS["test"]

    @property
    def bip32_network(self) -> str:
        """Extended keys only come in two flavours, all test networks share the same."""
        return "main" if self == Chain.MAIN else "test"
