from simulator import ConfigurationError

from .baseline import FifoPolicy, SjfPolicy
from .srtcf import SrtcfPolicy

POLICIES = {
    FifoPolicy.name: FifoPolicy,
    SjfPolicy.name: SjfPolicy,
    SrtcfPolicy.name: SrtcfPolicy,
}


def get_policy(name):
    """Instantiate a dispatch policy by its short name (fifo, sjf, srtcf)"""
    try:
        return POLICIES[name.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"unknown policy {name!r}, expected one of {', '.join(POLICIES)}") from None


def policy_names():
    return list(POLICIES)


__all__ = ["FifoPolicy", "SjfPolicy", "SrtcfPolicy", "POLICIES", "get_policy", "policy_names"]
