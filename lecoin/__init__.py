"""A toy proof-of-work cryptocurrency with simulated hosts, a virtual switch, miners and wallets."""

__version__ = "0.1.0"