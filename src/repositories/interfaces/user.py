from abc import ABC, abstractmethod
from typing import List, Optional

from src.domain.records import UserRecord


class IUserRepository(ABC):
    @abstractmethod
    def create(self, user: UserRecord) -> UserRecord:
        """
        새로운 사용자를 저장합니다.

        Raises:
            UserAlreadyExistsError: 삭제되지 않은 동일 이름의 사용자가 있을 때.
        """
        pass

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserRecord]:
        """사용자 이름으로 삭제되지 않은 사용자를 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[UserRecord]:
        """삭제되지 않은 모든 사용자의 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, username: str, email: str, role: str, secret_hash: Optional[str] = None) -> Optional[UserRecord]:
        """
        사용자 정보를 부분 갱신합니다. secret_hash가 None이면 기존 해시를 유지합니다.
        사용자가 없으면 None을 반환합니다.
        """
        pass

    @abstractmethod
    def delete(self, username: str) -> bool:
        """사용자를 소프트 삭제합니다. 대상이 없으면 False를 반환합니다."""
        pass
