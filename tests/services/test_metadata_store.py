# tests/services/test_metadata_store.py
import pytest
from unittest.mock import MagicMock, ANY

from src.domain.records import ImageRecord, TagRecord, UserRecord
from src.repositories.interfaces import IImageRepository, IUserRepository
from src.services.metadata_store import MetadataStore
from src.services.exceptions import *
from src.utils.password_hasher import PasswordHasher

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_user_repo() -> MagicMock:
    """IUserRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IUserRepository)

@pytest.fixture
def mock_image_repo() -> MagicMock:
    """IImageRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IImageRepository)

@pytest.fixture
def mocked_store(mock_user_repo: MagicMock, mock_image_repo: MagicMock) -> MetadataStore:
    """모의 리포지토리를 주입한 MetadataStore 인스턴스를 생성합니다."""
    return MetadataStore(mock_user_repo, mock_image_repo, PasswordHasher(rounds=4))

# ===================================================================
#  사용자 관리(User Management) 테스트
# ===================================================================
class TestUserManagement:
    def test_create_user_stores_hash_not_secret(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        """사용자 생성 시 평문 비밀번호 대신 해시가 저장되는지 테스트합니다."""
        # === Arrange ===
        mock_user_repo.create.side_effect = lambda user: user

        # === Act ===
        user = mocked_store.create_user("alice", "s3cr3t", "alice@example.com", "admin")

        # === Assert ===
        mock_user_repo.create.assert_called_once_with(ANY)
        assert user.secret_hash != "s3cr3t"
        assert mocked_store.hasher.verify("s3cr3t", user.secret_hash)

    def test_create_user_rejects_empty_username(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        with pytest.raises(ValidationError):
            mocked_store.create_user("", "s3cr3t", "a@example.com", "user")
        mock_user_repo.create.assert_not_called()

    def test_create_user_rejects_empty_secret(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        with pytest.raises(ValidationError):
            mocked_store.create_user("alice", "", "a@example.com", "user")
        mock_user_repo.create.assert_not_called()

    def test_find_user_not_found(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        mock_user_repo.find_by_username.return_value = None

        with pytest.raises(UserNotFoundError):
            mocked_store.find_user("ghost")

    def test_update_user_without_secret_passes_none(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        """비밀번호를 생략하면 리포지토리에 해시 없이 갱신을 요청합니다."""
        mock_user_repo.update.return_value = UserRecord("alice", "old-hash", "new@example.com", "user")

        mocked_store.update_user("alice", "new@example.com", "user")

        mock_user_repo.update.assert_called_once_with("alice", "new@example.com", "user", None)

    def test_update_user_not_found(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        mock_user_repo.update.return_value = None

        with pytest.raises(UserNotFoundError):
            mocked_store.update_user("ghost", "g@example.com", "user", "pw")

    def test_delete_user_not_found(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        mock_user_repo.delete.return_value = False

        with pytest.raises(UserNotFoundError):
            mocked_store.delete_user("ghost")

    def test_verify_credentials_rejects_inactive_user(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        """비활성 사용자는 비밀번호가 맞아도 인증에 실패합니다."""
        hashed = mocked_store.hasher.hash("s3cr3t")
        mock_user_repo.find_by_username.return_value = UserRecord("alice", hashed, "", "admin", active=False)

        with pytest.raises(AuthenticationError):
            mocked_store.verify_credentials("alice", "s3cr3t")

    @pytest.mark.parametrize("email,role", [(["x"], "user"), ("a@example.com", 7), ({"a": 1}, None)])
    def test_create_user_rejects_non_string_fields(self, mocked_store: MetadataStore, mock_user_repo: MagicMock, email, role):
        """이메일과 역할이 문자열이 아니면 저장소에 닿기 전에 거부합니다."""
        with pytest.raises(ValidationError):
            mocked_store.create_user("alice", "s3cr3t", email, role)
        mock_user_repo.create.assert_not_called()

    def test_create_user_rejects_non_string_secret(self, mocked_store: MetadataStore, mock_user_repo: MagicMock):
        with pytest.raises(ValidationError):
            mocked_store.create_user("alice", 12345, "a@example.com", "user")
        mock_user_repo.create.assert_not_called()

    @pytest.mark.parametrize("email,role,secret", [(["x"], "user", None), ("a@example.com", 7, None), ("a@example.com", "user", 12345)])
    def test_update_user_rejects_non_string_fields(self, mocked_store: MetadataStore, mock_user_repo: MagicMock, email, role, secret):
        with pytest.raises(ValidationError):
            mocked_store.update_user("alice", email, role, secret)
        mock_user_repo.update.assert_not_called()

    @pytest.mark.parametrize("username,secret", [("alice", 12345), (["alice"], "s3cr3t"), ("alice", None)])
    def test_verify_credentials_rejects_non_string_input(self, mocked_store: MetadataStore, mock_user_repo: MagicMock, username, secret):
        with pytest.raises(ValidationError):
            mocked_store.verify_credentials(username, secret)
        mock_user_repo.find_by_username.assert_not_called()

# ===================================================================
#  이미지/태그 관리 테스트
# ===================================================================
class TestImageManagement:
    def test_list_tags_of_missing_image(self, mocked_store: MetadataStore, mock_image_repo: MagicMock):
        mock_image_repo.list_tags.return_value = None

        with pytest.raises(ImageNotFoundError):
            mocked_store.list_tags("missing")

    def test_delete_image_not_found(self, mocked_store: MetadataStore, mock_image_repo: MagicMock):
        mock_image_repo.delete_with_tags.return_value = None

        with pytest.raises(ImageNotFoundError):
            mocked_store.delete_image("missing")

    def test_delete_tag_distinguishes_missing_image_and_tag(self, mocked_store: MetadataStore, mock_image_repo: MagicMock):
        """이미지가 없는 경우와 태그가 없는 경우를 서로 다른 오류로 구분합니다."""
        mock_image_repo.delete_tag.return_value = False

        mock_image_repo.find_by_name.return_value = None
        with pytest.raises(ImageNotFoundError):
            mocked_store.delete_tag("missing", "v1")

        mock_image_repo.find_by_name.return_value = ImageRecord("app/web", "", "alice")
        with pytest.raises(TagNotFoundError):
            mocked_store.delete_tag("app/web", "v1")

    @pytest.mark.parametrize("digest,size", [("", 10), ("sha256:x", -1), ("sha256:x", "10")])
    def test_publish_tag_validates_input(self, mocked_store: MetadataStore, mock_image_repo: MagicMock, digest, size):
        with pytest.raises(ValidationError):
            mocked_store.publish_tag("app/web", "v1", digest, size)
        mock_image_repo.upsert_tag.assert_not_called()

    @pytest.mark.parametrize("name", ["foo/tags", "team/tags/v1", "a/tags/b/c"])
    def test_create_image_rejects_tags_segment(self, mocked_store: MetadataStore, mock_image_repo: MagicMock, name):
        """태그 경로와 겹치는 이름은 조회나 삭제가 불가능하므로 생성 단계에서 거부합니다."""
        with pytest.raises(ValidationError):
            mocked_store.create_image(name, "", "alice")
        mock_image_repo.create.assert_not_called()

    @pytest.mark.parametrize("name", ["tags", "tags/web", "app/tagsx", "app/web"])
    def test_create_image_allows_other_names(self, mocked_store: MetadataStore, mock_image_repo: MagicMock, name):
        mock_image_repo.create.side_effect = lambda image: image

        assert mocked_store.create_image(name, "", "alice").name == name

    def test_create_image_rejects_non_string_description(self, mocked_store: MetadataStore, mock_image_repo: MagicMock):
        with pytest.raises(ValidationError):
            mocked_store.create_image("app/web", ["desc"], "alice")
        mock_image_repo.create.assert_not_called()

    def test_publish_tag_on_missing_image(self, mocked_store: MetadataStore, mock_image_repo: MagicMock):
        mock_image_repo.upsert_tag.return_value = None

        with pytest.raises(ImageNotFoundError):
            mocked_store.publish_tag("missing", "v1", "sha256:x", 10)

    def test_publish_tag_success(self, mocked_store: MetadataStore, mock_image_repo: MagicMock):
        mock_image_repo.upsert_tag.return_value = TagRecord("app/web", "v1", "sha256:x", 10)

        tag = mocked_store.publish_tag("app/web", "v1", "sha256:x", 10)

        assert tag.digest == "sha256:x"
        mock_image_repo.upsert_tag.assert_called_once_with("app/web", "v1", "sha256:x", 10)

# ===================================================================
#  실제 SQLite 저장소를 사용하는 시나리오 테스트
# ===================================================================
class TestStoreScenarios:
    def test_duplicate_user_yields_one_success_and_one_conflict(self, store: MetadataStore):
        results = []
        for _ in range(2):
            try:
                store.create_user("alice", "s3cr3t", "alice@example.com", "admin")
                results.append("ok")
            except ConflictError:
                results.append("conflict")

        assert sorted(results) == ["conflict", "ok"]

    def test_image_lifecycle(self, store: MetadataStore):
        """이미지와 태그를 만든 뒤 이미지를 삭제하면 태그 조회도 실패합니다."""
        # === Arrange ===
        store.create_image("app/web", "web frontend", "alice")
        store.publish_tag("app/web", "v1", "sha256:aaa", 100)
        store.publish_tag("app/web", "v2", "sha256:bbb", 200)
        assert sorted(t.name for t in store.list_tags("app/web")) == ["v1", "v2"]

        # === Act ===
        removed = store.delete_image("app/web")

        # === Assert ===
        assert removed == 2
        with pytest.raises(ImageNotFoundError):
            store.get_image("app/web")
        with pytest.raises(ImageNotFoundError):
            store.list_tags("app/web")

    def test_deleting_owner_does_not_cascade_to_images(self, store: MetadataStore):
        store.create_user("alice", "s3cr3t", "alice@example.com", "user")
        store.create_image("app/web", "", "alice")

        store.delete_user("alice")

        assert store.get_image("app/web").owner == "alice"

    def test_update_user_keeps_old_secret_when_omitted(self, store: MetadataStore):
        store.create_user("alice", "s3cr3t", "alice@example.com", "user")

        store.update_user("alice", "alice@corp.example", "admin")

        user = store.verify_credentials("alice", "s3cr3t")
        assert user.role == "admin"
        assert user.email == "alice@corp.example"

    def test_update_user_with_new_secret(self, store: MetadataStore):
        store.create_user("alice", "s3cr3t", "alice@example.com", "user")

        store.update_user("alice", "alice@example.com", "user", "n3w")

        with pytest.raises(AuthenticationError):
            store.verify_credentials("alice", "s3cr3t")
        assert store.verify_credentials("alice", "n3w").username == "alice"
