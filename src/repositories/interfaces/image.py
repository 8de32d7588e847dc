from abc import ABC, abstractmethod
from typing import List, Optional

from src.domain.records import ImageRecord, TagRecord


class IImageRepository(ABC):
    @abstractmethod
    def create(self, image: ImageRecord) -> ImageRecord:
        """
        새로운 이미지를 저장합니다.

        Raises:
            ImageAlreadyExistsError: 삭제되지 않은 동일 이름의 이미지가 있을 때.
        """
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[ImageRecord]:
        """이름으로 삭제되지 않은 이미지를 조회합니다. 살아 있는 태그를 함께 담습니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[ImageRecord]:
        """삭제되지 않은 모든 이미지의 목록을 조회합니다. 순서는 보장하지 않습니다."""
        pass

    @abstractmethod
    def list_tags(self, image_name: str) -> Optional[List[TagRecord]]:
        """이미지의 살아 있는 태그 목록을 조회합니다. 이미지가 없으면 None을 반환합니다."""
        pass

    @abstractmethod
    def find_tag(self, image_name: str, tag_name: str) -> Optional[TagRecord]:
        """이미지 안에서 이름으로 태그를 조회합니다."""
        pass

    @abstractmethod
    def upsert_tag(self, image_name: str, tag_name: str, digest: str, size: int) -> Optional[TagRecord]:
        """
        태그를 생성하거나, 이미 있으면 digest와 size를 갱신합니다.
        이미지가 없으면 None을 반환합니다.
        """
        pass

    @abstractmethod
    def record_pull(self, image_name: str, tag_name: str) -> Optional[TagRecord]:
        """태그의 pull 횟수를 1 증가시키고 마지막 pull 시각을 기록합니다."""
        pass

    @abstractmethod
    def delete_with_tags(self, name: str) -> Optional[int]:
        """
        이미지의 모든 태그를 삭제한 뒤 이미지를 삭제합니다. 두 단계는 하나의 트랜잭션입니다.
        이미지가 없거나 동시에 다른 요청이 먼저 삭제했다면 None을 반환합니다.

        Returns:
            함께 삭제된 태그의 개수.
        """
        pass

    @abstractmethod
    def delete_tag(self, image_name: str, tag_name: str) -> bool:
        """태그 하나를 소프트 삭제합니다. 대상이 없으면 False를 반환합니다."""
        pass
