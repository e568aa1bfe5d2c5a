"""Server address resolution for universes"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.universe import KubernetesZone, NodeDetails, ServerType, UniverseEndpoints
from .command_runner import CommandRunner, ShellResponse, SubprocessCommandRunner

logger = logging.getLogger(__name__)


class ServiceLookup(ABC):
    """Kubernetes service lookup"""

    @abstractmethod
    async def get_service_ips(
        self, config: Dict[str, str], namespace: str, is_master: bool
    ) -> ShellResponse:
        """Return a ShellResponse whose message is a '|' separated list of IPs"""


class KubectlServiceLookup(ServiceLookup):
    """
    Reads service IPs with kubectl.

    Prints the cluster IP followed by the load balancer IP, so the last IP is the
    externally reachable one when the service is exposed.
    """

    def __init__(self, runner: CommandRunner):
        self.runner = runner
        self.kubectl = os.getenv("KUBECTL", "kubectl")

    def build_args(self, config: Dict[str, str], namespace: str, is_master: bool) -> List[str]:
        service = "yb-master-service" if is_master else "yb-tserver-service"
        args = [self.kubectl]
        if config.get("KUBECONFIG"):
            args.extend(["--kubeconfig", config["KUBECONFIG"]])
        args.extend([
            "get", "svc", service,
            "--namespace", namespace,
            "-o", "jsonpath={.spec.clusterIP}|{.status.loadBalancer.ingress[0].ip}",
        ])
        return args

    async def get_service_ips(
        self, config: Dict[str, str], namespace: str, is_master: bool
    ) -> ShellResponse:
        return await self.runner.run(self.build_args(config, namespace, is_master))


def _serves(node: NodeDetails, server_type: ServerType) -> bool:
    return {
        ServerType.MASTER: node.is_master,
        ServerType.TSERVER: node.is_tserver,
        ServerType.YQLSERVER: node.is_yql_server,
        ServerType.YSQLSERVER: node.is_ysql_server,
        ServerType.REDISSERVER: node.is_redis_server,
    }[server_type]


def node_addresses(universe: UniverseEndpoints, server_type: ServerType) -> str:
    """Comma separated ip:port of the persisted nodes running server_type"""
    port = universe.communication_ports.rpc_port(server_type)
    return ",".join(
        f"{node.private_ip}:{port}"
        for node in universe.nodes
        if node.private_ip and _serves(node, server_type)
    )


async def kubernetes_service_addresses(
    universe: UniverseEndpoints,
    server_type: ServerType,
    lookup: ServiceLookup,
) -> Optional[str]:
    """
    Service ip:port per zone, or None if any zone lookup fails.

    The last IP reported for a zone is the service address.
    """
    if not universe.kubernetes_zones:
        return None

    port = universe.communication_ports.rpc_port(server_type)
    addresses: List[str] = []
    for zone in universe.kubernetes_zones:
        response = await lookup.get_service_ips(
            zone.config, zone.namespace, server_type == ServerType.MASTER
        )
        if response.code != 0 or response.message is None:
            logger.warning(f"Kubernetes service lookup failed: {response.message}")
            return None
        ips = [ip for ip in response.message.split("|") if ip.strip()]
        if not ips:
            logger.warning(f"Kubernetes service lookup returned no IPs for {_zone_label(zone)}")
            return None
        addresses.append(f"{ips[-1].strip()}:{port}")
    return ",".join(addresses)


async def get_server_addresses(
    universe: UniverseEndpoints,
    server_type: ServerType,
    lookup: Optional[ServiceLookup] = None,
) -> str:
    """Service addresses when Kubernetes exposes them, node addresses otherwise"""
    if lookup is not None:
        addresses = await kubernetes_service_addresses(universe, server_type, lookup)
        if addresses is not None:
            return addresses
    return node_addresses(universe, server_type)


def _zone_label(zone: KubernetesZone) -> str:
    return f"{zone.namespace} ({zone.az_code})" if zone.az_code else zone.namespace


# Singleton instance
_service_lookup: Optional[ServiceLookup] = None


def get_service_lookup() -> ServiceLookup:
    """Get Kubernetes service lookup singleton"""
    global _service_lookup
    if _service_lookup is None:
        _service_lookup = KubectlServiceLookup(SubprocessCommandRunner())
    return _service_lookup
