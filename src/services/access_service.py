import logging
from typing import Any, Dict, List, Optional

from src.domain.records import TokenClaims, utcnow
from src.services.access_policy import AccessPolicy
from src.services.credential_manager import CredentialManager
from src.services.exceptions import (
    PermissionDeniedError, StoreUnavailableError, TokenInvalidError,
)
from src.services.metadata_store import MetadataStore
from src.services.metrics_cache import IMAGE_COUNT_KEY, TAG_COUNT_KEY, MetricsCache
from src.services.registry_client import RegistryClient

logger = logging.getLogger(__name__)


def parse_bearer(authorization: Optional[str]) -> str:
    """
    'Authorization: Bearer <token>' 헤더 값에서 토큰을 꺼냅니다.

    Raises:
        TokenInvalidError: 헤더가 없거나 Bearer 형식이 아닐 때.
    """
    if not authorization:
        raise TokenInvalidError("No token provided.")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise TokenInvalidError("Authorization header must use the Bearer scheme.")
    return token.strip()


class AccessService:
    """
    인증, 이미지/태그/사용자 관리, 사용량 조회 작업을 외부에 제공하는 조합 루트입니다.
    각 작업은 상태 없이 하나의 하위 구성 요소를 호출하고 결과를 응답 형태로 바꿉니다.
    """

    def __init__(
        self,
        store: MetadataStore,
        credentials: CredentialManager,
        metrics: MetricsCache,
        policy: Optional[AccessPolicy] = None,
        registry: Optional[RegistryClient] = None,
    ):
        self.store = store
        self.credentials = credentials
        self.metrics = metrics
        self.policy = policy or AccessPolicy()
        self.registry = registry

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def authorize(self, authorization: Optional[str], operation: str) -> TokenClaims:
        """
        토큰을 검증하고, 접근 정책이 해당 작업을 허용하는지 확인합니다.

        Raises:
            TokenInvalidError: 토큰이 없거나 유효하지 않을 때.
            PermissionDeniedError: 정책이 작업을 허용하지 않을 때.
        """
        claims = self.credentials.verify(parse_bearer(authorization))
        if not self.policy.is_allowed(claims, operation):
            logger.warning("Access denied", extra={"username": claims.username, "operation": operation})
            raise PermissionDeniedError(f"Role '{claims.role}' may not perform '{operation}'.")
        return claims

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        자격 증명을 해시 검증으로 확인하고, 성공 시 베어러 토큰과 사용자 정보를 반환합니다.

        Raises:
            AuthenticationError: 사용자 이름이나 비밀번호가 올바르지 않을 때.
        """
        user = self.store.verify_credentials(username, password)
        token = self.credentials.issue(user.username, user.role)
        logger.info("Login succeeded", extra={"username": user.username})
        return {"token": token, "user": user.to_dict()}

    def refresh_token(self, authorization: Optional[str]) -> Dict[str, str]:
        token = parse_bearer(authorization)
        new_token = self.credentials.refresh(token, lambda username: self.store.find_user(username).role)
        return {"token": new_token}

    def verify_token(self, authorization: Optional[str]) -> Dict[str, Any]:
        claims = self.credentials.verify(parse_bearer(authorization))
        return {"valid": True, "claims": claims.to_dict()}

    # ------------------------------------------------------------------
    # Images & Tags
    # ------------------------------------------------------------------

    def list_images(self, authorization: Optional[str]) -> List[Dict[str, Any]]:
        self.authorize(authorization, "list_images")
        return [image.to_dict() for image in self.store.list_images()]

    def get_image(self, authorization: Optional[str], name: str) -> Dict[str, Any]:
        self.authorize(authorization, "get_image")
        return self.store.get_image(name).to_dict()

    def list_tags(self, authorization: Optional[str], name: str) -> List[Dict[str, Any]]:
        self.authorize(authorization, "list_tags")
        return [tag.to_dict() for tag in self.store.list_tags(name)]

    def create_image(self, authorization: Optional[str], name: str, description: str = "", public: bool = False) -> Dict[str, Any]:
        """이미지를 생성합니다. 소유자는 토큰의 사용자입니다."""
        claims = self.authorize(authorization, "create_image")
        image = self.store.create_image(name, description, claims.username, public)
        self._bump(IMAGE_COUNT_KEY, 1)
        return image.to_dict()

    def publish_tag(self, authorization: Optional[str], name: str, tag: str, digest: str, size: int) -> Dict[str, Any]:
        """외부 blob 전송이 끝난 뒤 보고된 digest와 크기로 태그를 기록합니다."""
        self.authorize(authorization, "publish_tag")
        is_new = not any(t.name == tag for t in self.store.list_tags(name))
        record = self.store.publish_tag(name, tag, digest, size)
        if is_new:
            self._bump(TAG_COUNT_KEY, 1)
        return record.to_dict()

    def record_pull(self, authorization: Optional[str], name: str, tag: str) -> Dict[str, Any]:
        self.authorize(authorization, "record_pull")
        return self.store.record_pull(name, tag).to_dict()

    def delete_image(self, authorization: Optional[str], name: str) -> Dict[str, str]:
        self.authorize(authorization, "delete_image")
        removed_tags = self.store.delete_image(name)
        self._bump(IMAGE_COUNT_KEY, -1)
        if removed_tags:
            self._bump(TAG_COUNT_KEY, -removed_tags)
        return {"message": "Image deleted successfully"}

    def delete_tag(self, authorization: Optional[str], name: str, tag: str) -> Dict[str, str]:
        self.authorize(authorization, "delete_tag")
        self.store.delete_tag(name, tag)
        self._bump(TAG_COUNT_KEY, -1)
        return {"message": "Tag deleted successfully"}

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(self, authorization: Optional[str]) -> List[Dict[str, Any]]:
        self.authorize(authorization, "list_users")
        return [user.to_dict() for user in self.store.list_users()]

    def create_user(self, authorization: Optional[str], username: str, password: str, email: str = "", role: str = "user") -> Dict[str, Any]:
        self.authorize(authorization, "create_user")
        return self.store.create_user(username, password, email, role).to_dict()

    def update_user(self, authorization: Optional[str], username: str, email: str = "", role: str = "user", password: Optional[str] = None) -> Dict[str, Any]:
        self.authorize(authorization, "update_user")
        return self.store.update_user(username, email, role, password).to_dict()

    def delete_user(self, authorization: Optional[str], username: str) -> Dict[str, str]:
        self.authorize(authorization, "delete_user")
        self.store.delete_user(username)
        return {"message": "User deleted successfully"}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_registry_metrics(self) -> Dict[str, Any]:
        return self.metrics.get_registry_metrics()

    def registry_health(self) -> Dict[str, str]:
        return {"status": "UP", "timestamp": utcnow().isoformat()}

    def registry_info(self) -> Dict[str, Any]:
        if self.registry is None:
            raise StoreUnavailableError("Registry endpoint is not configured.")
        return self.registry.info()

    def _bump(self, counter: str, amount: int):
        # 카운터는 저장소 트랜잭션 밖에서 갱신됩니다. 실패는 경고로만 남깁니다.
        try:
            self.metrics.increment(counter, amount)
        except StoreUnavailableError as e:
            logger.warning("Failed to update counter '%s': %s", counter, e)
