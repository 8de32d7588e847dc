from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.database import models
from src.domain.records import UserRecord, utcnow
from src.repositories.interfaces import IUserRepository
from src.repositories.sqlalchemy.session_scope import live, reading, transaction
from src.services.exceptions import UserAlreadyExistsError


def to_user_record(user: models.User) -> UserRecord:
    return UserRecord(
        username=user.username,
        secret_hash=user.secret_hash,
        email=user.email,
        role=user.role,
        active=user.active,
        created_at=user.created_at,
        updated_at=user.updated_at,
        deleted_at=user.deleted_at,
    )


class SqlalchemyUserRepository(IUserRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _query_live(self, username: str):
        return live(self.db.query(models.User), models.User).filter(models.User.username == username)

    def create(self, user: UserRecord) -> UserRecord:
        user_model = models.User(
            username=user.username,
            secret_hash=user.secret_hash,
            email=user.email,
            role=user.role,
            active=user.active,
        )
        try:
            with transaction(self.db):
                self.db.add(user_model)
        except IntegrityError as e:
            # 동시에 같은 이름으로 생성된 경우 부분 유니크 인덱스가 막아 줍니다.
            raise UserAlreadyExistsError(f"User with username '{user.username}' already exists.") from e
        return to_user_record(user_model)

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        with reading(self.db):
            user = self._query_live(username).first()
        return to_user_record(user) if user else None

    def list_all(self) -> List[UserRecord]:
        with reading(self.db):
            users = live(self.db.query(models.User), models.User).order_by(models.User.username.asc()).all()
        return [to_user_record(u) for u in users]

    def update(self, username: str, email: str, role: str, secret_hash: Optional[str] = None) -> Optional[UserRecord]:
        with transaction(self.db):
            user = self._query_live(username).with_for_update().first()
            if not user:
                return None
            user.email = email
            user.role = role
            if secret_hash is not None:
                user.secret_hash = secret_hash
            user.updated_at = utcnow()
        return to_user_record(user)

    def delete(self, username: str) -> bool:
        now = utcnow()
        with transaction(self.db):
            updated = self._query_live(username).update(
                {models.User.deleted_at: now, models.User.active: False},
                synchronize_session=False,
            )
        return updated > 0
