"""Infrastructure account and credential models"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class CloudType(Enum):
    """Provider codes"""
    aws = "aws"
    gcp = "gcp"
    azu = "azu"
    kubernetes = "kubernetes"
    onprem = "onprem"


class Provider(BaseModel):
    """Infrastructure account"""
    uuid: UUID = Field(default_factory=uuid4)
    code: CloudType
    name: str
    config: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class KeyInfo(BaseModel):
    """Credential payload stored with an access key"""
    public_key: Optional[str] = None
    private_key: Optional[str] = None
    vault_file: Optional[str] = None
    ssh_user: Optional[str] = None
    ssh_port: int = Field(default=22, ge=1, le=65535)
    air_gap_install: bool = False
    # Nodes were prepared out-of-band, provisioning is skipped
    skip_provisioning: bool = False


class AccessKey(BaseModel):
    """Credential record associated with a provider"""
    key_code: str = Field(..., min_length=1)
    provider_uuid: UUID
    key_info: KeyInfo
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def get_key_info(self) -> KeyInfo:
        return self.key_info

