# src/domain/records.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """시간대 정보가 없는 값은 UTC로 간주합니다. SQLite는 저장 시 오프셋을 버립니다."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


def is_live(record) -> bool:
    """소프트 삭제되지 않은 레코드인지 확인합니다. 모든 읽기 경로에서 사용합니다."""
    return getattr(record, "deleted_at", None) is None


@dataclass
class UserRecord:
    """레지스트리 운영자. secret_hash는 bcrypt 해시이며 외부로 노출하지 않습니다."""
    username: str
    secret_hash: str
    email: str
    role: str
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "active": self.active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class TagRecord:
    image_name: str
    name: str
    digest: str
    size: int
    pull_count: int = 0
    created_at: Optional[datetime] = None
    last_pulled_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image": self.image_name,
            "name": self.name,
            "digest": self.digest,
            "size": self.size,
            "pull_count": self.pull_count,
            "created_at": _iso(self.created_at),
            "last_pulled_at": _iso(self.last_pulled_at),
        }


@dataclass
class ImageRecord:
    """
    이름으로 식별되는 컨테이너 이미지.
    owner는 사용자 이름에 대한 약한 참조로, 사용자가 삭제되어도 이미지에는 영향이 없습니다.
    """
    name: str
    description: str
    owner: str
    public: bool = False
    tags: List[TagRecord] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "owner": self.owner,
            "public": self.public,
            "tags": [tag.name for tag in self.tags if is_live(tag)],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class TokenClaims:
    """베어러 토큰에 담기는 고정된 형태의 클레임."""
    username: str
    role: str
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "role": self.role,
            "expires_at": self.expires_at.isoformat(),
        }
