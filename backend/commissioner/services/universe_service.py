"""Universe service - universe records and their endpoints"""
import logging
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from ..db import Database, get_db
from ..exceptions import ConfigurationError
from ..models.universe import Universe, UniverseEndpoints

logger = logging.getLogger(__name__)


class UniverseService:
    """Reads and registers universes"""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def get_universe(self, universe_uuid: UUID) -> Universe:
        """Get universe by uuid, raising ConfigurationError if missing or unreadable"""
        row = self.db.get_universe(str(universe_uuid))
        if not row:
            raise ConfigurationError(f"Universe {universe_uuid} not found")
        try:
            return Universe(
                uuid=row["uuid"],
                name=row["name"],
                provider_uuid=row["provider_uuid"],
                endpoints=UniverseEndpoints.model_validate_json(row["details"] or "{}"),
                created_at=row["created_at"],
            )
        except ValidationError as e:
            raise ConfigurationError(f"Universe {universe_uuid} is malformed: {e}") from e

    def create_universe(
        self,
        name: str,
        endpoints: Optional[UniverseEndpoints] = None,
        provider_uuid: Optional[UUID] = None,
    ) -> Universe:
        universe = Universe(
            name=name,
            provider_uuid=provider_uuid,
            endpoints=endpoints or UniverseEndpoints(),
        )
        self.db.insert_universe({
            "uuid": str(universe.uuid),
            "name": universe.name,
            "provider_uuid": str(provider_uuid) if provider_uuid else None,
            "details": universe.endpoints.model_dump(mode="json"),
            "created_at": universe.created_at.isoformat(),
        })
        logger.info(f"Registered universe {universe.name} ({universe.uuid})")
        return universe


# Singleton instance
_universe_service: Optional[UniverseService] = None


def get_universe_service() -> UniverseService:
    """Get universe service singleton"""
    global _universe_service
    if _universe_service is None:
        _universe_service = UniverseService()
    return _universe_service
