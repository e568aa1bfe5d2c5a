"""Universe endpoint API"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from ..exceptions import ConfigurationError
from ..models.universe import (
    MasterNode,
    MastersList,
    ServerAddresses,
    ServerType,
    Universe,
    UniverseCreate,
)
from ..services.server_addresses import ServiceLookup, get_server_addresses, get_service_lookup
from ..services.universe_service import UniverseService, get_universe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/universes", tags=["universes"])


def _get_or_400(universes: UniverseService, universe_uuid: UUID) -> Universe:
    try:
        return universes.get_universe(universe_uuid)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=Universe, status_code=201)
async def create_universe(
    universe: UniverseCreate,
    universes: UniverseService = Depends(get_universe_service),
):
    """Register a universe and its nodes"""
    try:
        return universes.create_universe(
            universe.name, universe.endpoints, universe.provider_uuid
        )
    except Exception as e:
        logger.error(f"Error registering universe {universe.name}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{universe_uuid}", response_model=Universe)
async def get_universe(
    universe_uuid: UUID,
    universes: UniverseService = Depends(get_universe_service),
):
    return _get_or_400(universes, universe_uuid)


@router.get("/{universe_uuid}/masters", response_model=MastersList)
async def get_masters(
    universe_uuid: UUID,
    universes: UniverseService = Depends(get_universe_service),
):
    """Master nodes with the port clients reach them on"""
    universe = _get_or_400(universes, universe_uuid)
    port = universe.endpoints.communication_ports.master_rpc_port
    return MastersList(masters=[
        MasterNode(node_name=node.node_name, private_ip=node.private_ip, master_rpc_port=port)
        for node in universe.get_masters()
    ])


@router.get("/{universe_uuid}/addresses/{server_type}", response_model=ServerAddresses)
async def get_addresses(
    universe_uuid: UUID,
    server_type: ServerType,
    universes: UniverseService = Depends(get_universe_service),
    lookup: ServiceLookup = Depends(get_service_lookup),
):
    """
    Addresses of a server type

    Kubernetes universes report their exposed service addresses; everything else,
    including a failed service lookup, reports the node addresses.
    """
    universe = _get_or_400(universes, universe_uuid)
    try:
        addresses = await get_server_addresses(universe.endpoints, server_type, lookup)
    except Exception as e:
        logger.error(f"Error resolving {server_type.value} addresses of {universe_uuid}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return ServerAddresses(universe_uuid=universe.uuid, server_type=server_type, addresses=addresses)
