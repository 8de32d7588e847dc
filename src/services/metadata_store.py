import logging
from typing import List, Optional

from src.domain.records import ImageRecord, TagRecord, UserRecord
from src.repositories.interfaces import IImageRepository, IUserRepository
from src.services.exceptions import (
    AuthenticationError, ImageNotFoundError, TagNotFoundError,
    UserNotFoundError, ValidationError,
)
from src.utils.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)


def _require_name(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must be a non-empty string.")
    return value


def _optional_text(value: Optional[str], label: str, default: str = "") -> str:
    """None이나 빈 문자열이면 기본값을, 문자열이 아니면 ValidationError를 돌려줍니다."""
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string.")
    return value


def _require_image_name(name: str) -> str:
    # 첫 구간 이후의 'tags' 구간은 태그 경로와 구분할 수 없습니다.
    _require_name(name, "Image name")
    if "tags" in name.split("/")[1:]:
        raise ValidationError("Image name may not contain a 'tags' path segment.")
    return name


class MetadataStore:
    """
    사용자, 이미지, 태그 레코드와 그 관계 불변식을 관리합니다.
    영속 상태를 쓰는 유일한 구성 요소이며, 모든 조회는 자연 키(사용자 이름, 이미지 이름)로 합니다.
    """

    def __init__(self, user_repo: IUserRepository, image_repo: IImageRepository, hasher: PasswordHasher):
        """
        MetadataStore를 초기화합니다.

        Args:
            user_repo: 사용자 데이터에 접근하기 위한 리포지토리.
            image_repo: 이미지와 태그 데이터에 접근하기 위한 리포지토리.
            hasher: 비밀번호를 해시하고 검증하는 객체.
        """
        self.user_repo = user_repo
        self.image_repo = image_repo
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str, secret: str, email: str, role: str) -> UserRecord:
        """
        새로운 사용자를 생성합니다. 비밀번호는 솔트가 포함된 해시로만 저장합니다.

        Raises:
            ValidationError: 사용자 이름이나 비밀번호가 비어 있거나, 이메일/역할이 문자열이 아닐 때.
            UserAlreadyExistsError: 삭제되지 않은 동일 이름의 사용자가 이미 존재할 때.
        """
        _require_name(username, "Username")
        email = _optional_text(email, "Email")
        role = _optional_text(role, "Role", default="user")
        new_user = UserRecord(
            username=username,
            secret_hash=self.hasher.hash(secret),
            email=email,
            role=role,
        )
        created = self.user_repo.create(new_user)
        logger.info("User created", extra={"username": username})
        return created

    def find_user(self, username: str) -> UserRecord:
        """
        Raises:
            UserNotFoundError: 해당 이름의 사용자를 찾을 수 없을 때.
        """
        user = self.user_repo.find_by_username(username)
        if not user:
            raise UserNotFoundError(f"User '{username}' not found.")
        return user

    def list_users(self) -> List[UserRecord]:
        return self.user_repo.list_all()

    def update_user(self, username: str, email: str, role: str, new_secret: Optional[str] = None) -> UserRecord:
        """
        사용자의 이메일과 역할을 갱신합니다. new_secret이 없으면 저장된 비밀번호는 그대로 유지됩니다.

        Raises:
            ValidationError: 이메일, 역할, 새 비밀번호가 문자열이 아닐 때.
            UserNotFoundError: 해당 이름의 사용자를 찾을 수 없을 때.
        """
        email = _optional_text(email, "Email")
        role = _optional_text(role, "Role", default="user")
        secret_hash = self.hasher.hash(new_secret) if new_secret is not None and new_secret != "" else None
        updated = self.user_repo.update(username, email, role, secret_hash)
        if not updated:
            raise UserNotFoundError(f"User '{username}' not found.")
        return updated

    def delete_user(self, username: str) -> None:
        """
        사용자를 소프트 삭제합니다. 사용자가 소유한 이미지는 영향을 받지 않습니다.

        Raises:
            UserNotFoundError: 해당 이름의 사용자를 찾을 수 없을 때.
        """
        if not self.user_repo.delete(username):
            raise UserNotFoundError(f"User '{username}' not found.")
        logger.info("User deleted", extra={"username": username})

    def verify_credentials(self, username: str, secret: str) -> UserRecord:
        """
        사용자 이름과 평문 비밀번호를 해시 검증으로 확인합니다.
        사용자 없음, 비활성 사용자, 비밀번호 불일치는 모두 같은 오류로 처리합니다.

        Raises:
            ValidationError: 사용자 이름이나 비밀번호가 문자열이 아닐 때.
            AuthenticationError: 자격 증명이 올바르지 않을 때.
        """
        if not isinstance(username, str) or not isinstance(secret, str):
            raise ValidationError("Username and password must be strings.")
        user = self.user_repo.find_by_username(username) if username else None
        if not user or not user.active or not self.hasher.verify(secret, user.secret_hash):
            raise AuthenticationError("Invalid credentials.")
        return user

    # ------------------------------------------------------------------
    # Images & Tags
    # ------------------------------------------------------------------

    def create_image(self, name: str, description: str, owner: str, public: bool = False) -> ImageRecord:
        """
        Raises:
            ValidationError: 이미지 이름이 비어 있거나 'tags' 구간을 포함할 때, 설명이 문자열이 아닐 때.
            ImageAlreadyExistsError: 동일한 이름의 이미지가 이미 존재할 때.
        """
        _require_image_name(name)
        description = _optional_text(description, "Description")
        created = self.image_repo.create(
            ImageRecord(name=name, description=description, owner=owner or "", public=bool(public))
        )
        logger.info("Image created", extra={"image": name, "username": owner})
        return created

    def list_images(self) -> List[ImageRecord]:
        return self.image_repo.list_all()

    def get_image(self, name: str) -> ImageRecord:
        image = self.image_repo.find_by_name(name)
        if not image:
            raise ImageNotFoundError(f"Image '{name}' not found.")
        return image

    def list_tags(self, image_name: str) -> List[TagRecord]:
        """
        Raises:
            ImageNotFoundError: 이미지가 존재하지 않을 때.
        """
        tags = self.image_repo.list_tags(image_name)
        if tags is None:
            raise ImageNotFoundError(f"Image '{image_name}' not found.")
        return tags

    def publish_tag(self, image_name: str, tag_name: str, digest: str, size: int) -> TagRecord:
        """
        외부 blob 전송 엔드포인트가 보고한 digest와 크기로 태그를 기록합니다.
        이미 존재하는 태그라면 digest와 크기를 갱신합니다.

        Raises:
            ValidationError: 태그 이름, digest가 비어 있거나 크기가 음수일 때.
            ImageNotFoundError: 이미지가 존재하지 않을 때.
        """
        _require_name(tag_name, "Tag name")
        _require_name(digest, "Digest")
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValidationError("Size must be a non-negative integer.")

        tag = self.image_repo.upsert_tag(image_name, tag_name, digest, size)
        if not tag:
            raise ImageNotFoundError(f"Image '{image_name}' not found.")
        logger.info("Tag published", extra={"image": image_name, "tag": tag_name})
        return tag

    def record_pull(self, image_name: str, tag_name: str) -> TagRecord:
        tag = self.image_repo.record_pull(image_name, tag_name)
        if not tag:
            self._raise_tag_missing(image_name, tag_name)
        return tag

    def delete_image(self, name: str) -> int:
        """
        이미지와 모든 태그를 하나의 트랜잭션으로 삭제합니다.
        태그 삭제 중 실패하면 이미지와 태그는 호출 전 상태로 남습니다.
        같은 이미지에 대한 동시 삭제는 하나만 성공하고 나머지는 ImageNotFoundError를 받습니다.

        Returns:
            함께 삭제된 태그의 개수.

        Raises:
            ImageNotFoundError: 이미지가 존재하지 않을 때.
        """
        removed = self.image_repo.delete_with_tags(name)
        if removed is None:
            raise ImageNotFoundError(f"Image '{name}' not found.")
        logger.info("Image deleted with %d tag(s)", removed, extra={"image": name})
        return removed

    def delete_tag(self, image_name: str, tag_name: str) -> None:
        """
        Raises:
            ImageNotFoundError: 이미지가 존재하지 않을 때.
            TagNotFoundError: 이미지에 해당 태그가 없을 때.
        """
        if not self.image_repo.delete_tag(image_name, tag_name):
            self._raise_tag_missing(image_name, tag_name)
        logger.info("Tag deleted", extra={"image": image_name, "tag": tag_name})

    def _raise_tag_missing(self, image_name: str, tag_name: str):
        if not self.image_repo.find_by_name(image_name):
            raise ImageNotFoundError(f"Image '{image_name}' not found.")
        raise TagNotFoundError(f"Tag '{tag_name}' not found in image '{image_name}'.")
