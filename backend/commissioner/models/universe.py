"""Universe node and placement models"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ServerType(Enum):
    MASTER = "MASTER"
    TSERVER = "TSERVER"
    YQLSERVER = "YQLSERVER"
    YSQLSERVER = "YSQLSERVER"
    REDISSERVER = "REDISSERVER"


class CommunicationPorts(BaseModel):
    """RPC ports clients use to reach each server type"""
    master_rpc_port: int = Field(default=7100, ge=1, le=65535)
    tserver_rpc_port: int = Field(default=9100, ge=1, le=65535)
    yql_server_rpc_port: int = Field(default=9042, ge=1, le=65535)
    ysql_server_rpc_port: int = Field(default=5433, ge=1, le=65535)
    redis_server_rpc_port: int = Field(default=6379, ge=1, le=65535)

    def rpc_port(self, server_type: ServerType) -> int:
        return {
            ServerType.MASTER: self.master_rpc_port,
            ServerType.TSERVER: self.tserver_rpc_port,
            ServerType.YQLSERVER: self.yql_server_rpc_port,
            ServerType.YSQLSERVER: self.ysql_server_rpc_port,
            ServerType.REDISSERVER: self.redis_server_rpc_port,
        }[server_type]


class NodeDetails(BaseModel):
    """Persisted node of a universe"""
    node_name: str
    private_ip: Optional[str] = None
    is_master: bool = False
    is_tserver: bool = True
    is_yql_server: bool = True
    is_ysql_server: bool = True
    is_redis_server: bool = False


class KubernetesZone(BaseModel):
    """Per-zone Kubernetes placement of a universe"""
    az_code: Optional[str] = None
    namespace: str
    config: Dict[str, str] = Field(default_factory=dict)


class UniverseEndpoints(BaseModel):
    """What address resolution needs to know about a universe"""
    nodes: List[NodeDetails] = Field(default_factory=list)
    communication_ports: CommunicationPorts = Field(default_factory=CommunicationPorts)
    # Set only for Kubernetes universes whose services are exposed
    kubernetes_zones: List[KubernetesZone] = Field(default_factory=list)


class Universe(BaseModel):
    """Persisted universe and the endpoints it serves"""
    uuid: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1)
    provider_uuid: Optional[UUID] = None
    endpoints: UniverseEndpoints = Field(default_factory=UniverseEndpoints)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def get_masters(self) -> List[NodeDetails]:
        return [node for node in self.endpoints.nodes if node.is_master]


class UniverseCreate(BaseModel):
    """Request body for registering a universe"""
    name: str = Field(..., min_length=1)
    provider_uuid: Optional[UUID] = None
    endpoints: UniverseEndpoints = Field(default_factory=UniverseEndpoints)


class MasterNode(BaseModel):
    node_name: str
    private_ip: Optional[str] = None
    master_rpc_port: int


class MastersList(BaseModel):
    masters: List[MasterNode] = Field(default_factory=list)


class ServerAddresses(BaseModel):
    """Comma separated ip:port list clients use to reach a server type"""
    universe_uuid: UUID
    server_type: ServerType
    addresses: str
