"""Account service - provider and access key lookups"""
import json
import logging
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError

from ..db import Database, get_db
from ..exceptions import ConfigurationError
from ..models.provider import AccessKey, CloudType, KeyInfo, Provider

logger = logging.getLogger(__name__)


class AccountService:
    """Reads infrastructure accounts and their credentials"""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def get_provider(self, provider_uuid: UUID) -> Provider:
        """Get provider by uuid, raising ConfigurationError if missing or unreadable"""
        row = self.db.get_provider(str(provider_uuid))
        if not row:
            raise ConfigurationError(f"Provider {provider_uuid} not found")
        try:
            return Provider(
                uuid=row["uuid"],
                code=CloudType(row["code"]),
                name=row["name"],
                config=json.loads(row["config"] or "{}"),
                created_at=row["created_at"],
            )
        except (ValueError, ValidationError) as e:
            raise ConfigurationError(f"Provider {provider_uuid} is malformed: {e}") from e

    def get_access_keys(self, provider_uuid: UUID) -> List[AccessKey]:
        """Access keys of a provider, oldest first"""
        keys = []
        for row in self.db.list_access_keys(str(provider_uuid)):
            try:
                keys.append(AccessKey(
                    key_code=row["key_code"],
                    provider_uuid=row["provider_uuid"],
                    key_info=KeyInfo.model_validate_json(row["key_info"] or "{}"),
                    created_at=row["created_at"],
                ))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Access key {row['key_code']} of provider {provider_uuid} is malformed: {e}"
                ) from e
        return keys

    def create_provider(self, code: CloudType, name: str, config: Optional[dict] = None) -> Provider:
        provider = Provider(code=code, name=name, config=config or {})
        self.db.insert_provider({
            "uuid": str(provider.uuid),
            "code": provider.code.value,
            "name": provider.name,
            "config": provider.config,
            "created_at": provider.created_at.isoformat(),
        })
        logger.info(f"Created provider {provider.name} ({provider.code.value})")
        return provider

    def add_access_key(self, provider_uuid: UUID, key_code: str, key_info: KeyInfo) -> AccessKey:
        access_key = AccessKey(key_code=key_code, provider_uuid=provider_uuid, key_info=key_info)
        self.db.insert_access_key({
            "key_code": access_key.key_code,
            "provider_uuid": str(provider_uuid),
            "key_info": key_info.model_dump(),
            "created_at": access_key.created_at.isoformat(),
        })
        logger.info(f"Added access key {key_code} to provider {provider_uuid}")
        return access_key

    def should_skip_provisioning(self, provider: Provider) -> bool:
        """On-prem providers may have nodes prepared out-of-band, flagged on the first key"""
        if provider.code != CloudType.onprem:
            return False
        access_keys = self.get_access_keys(provider.uuid)
        if not access_keys:
            return False
        return access_keys[0].get_key_info().skip_provisioning


# Singleton instance
_account_service: Optional[AccountService] = None


def get_account_service() -> AccountService:
    """Get account service singleton"""
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service
