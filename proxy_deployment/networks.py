from ape import networks

from proxy_deployment.constants import LOCAL_NETWORKS


def is_local_network() -> bool:
    """Returns True when connected to a local development chain."""
    return networks.provider.network.name in LOCAL_NETWORKS
