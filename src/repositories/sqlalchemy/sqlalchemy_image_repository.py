from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.database import models
from src.domain.records import ImageRecord, TagRecord, utcnow
from src.repositories.interfaces import IImageRepository
from src.repositories.sqlalchemy.session_scope import live, reading, transaction
from src.services.exceptions import ImageAlreadyExistsError


class _ImageAlreadyClaimed(Exception):
    """다른 요청이 같은 이미지를 먼저 삭제했을 때 트랜잭션을 되돌리기 위한 내부 신호"""


def to_tag_record(tag: models.Tag, image_name: str) -> TagRecord:
    return TagRecord(
        image_name=image_name,
        name=tag.name,
        digest=tag.digest,
        size=tag.size,
        pull_count=tag.pull_count,
        created_at=tag.created_at,
        last_pulled_at=tag.last_pulled_at,
        deleted_at=tag.deleted_at,
    )


def to_image_record(image: models.Image, tags: Optional[List[models.Tag]] = None) -> ImageRecord:
    return ImageRecord(
        name=image.name,
        description=image.description,
        owner=image.owner,
        public=image.public,
        tags=[to_tag_record(t, image.name) for t in (tags or [])],
        created_at=image.created_at,
        updated_at=image.updated_at,
        deleted_at=image.deleted_at,
    )


class SqlalchemyImageRepository(IImageRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _query_live_image(self, name: str):
        return live(self.db.query(models.Image), models.Image).filter(models.Image.name == name)

    def _live_tags_of(self, image_id: int):
        return live(self.db.query(models.Tag), models.Tag).filter(models.Tag.image_id == image_id)

    def _mark_tag_deleted(self, tag: models.Tag, deleted_at: datetime):
        tag.deleted_at = deleted_at

    def create(self, image: ImageRecord) -> ImageRecord:
        image_model = models.Image(
            name=image.name,
            description=image.description,
            owner=image.owner,
            public=image.public,
        )
        try:
            with transaction(self.db):
                self.db.add(image_model)
        except IntegrityError as e:
            raise ImageAlreadyExistsError(f"Image '{image.name}' already exists.") from e
        return to_image_record(image_model)

    def find_by_name(self, name: str) -> Optional[ImageRecord]:
        with reading(self.db):
            image = self._query_live_image(name).first()
            if not image:
                return None
            tags = self._live_tags_of(image.id).all()
        return to_image_record(image, tags)

    def list_all(self) -> List[ImageRecord]:
        with reading(self.db):
            images = live(self.db.query(models.Image), models.Image).all()
        return [to_image_record(i) for i in images]

    def list_tags(self, image_name: str) -> Optional[List[TagRecord]]:
        with reading(self.db):
            image = self._query_live_image(image_name).first()
            if not image:
                return None
            tags = self._live_tags_of(image.id).all()
        return [to_tag_record(t, image_name) for t in tags]

    def find_tag(self, image_name: str, tag_name: str) -> Optional[TagRecord]:
        with reading(self.db):
            image = self._query_live_image(image_name).first()
            if not image:
                return None
            tag = self._live_tags_of(image.id).filter(models.Tag.name == tag_name).first()
        return to_tag_record(tag, image_name) if tag else None

    def upsert_tag(self, image_name: str, tag_name: str, digest: str, size: int) -> Optional[TagRecord]:
        # 같은 태그를 동시에 처음 게시하면 한쪽이 유니크 인덱스에 걸리므로, 한 번 더 갱신 경로로 시도합니다.
        for attempt in range(2):
            try:
                with transaction(self.db):
                    image = self._query_live_image(image_name).first()
                    if not image:
                        return None
                    tag = self._live_tags_of(image.id).filter(models.Tag.name == tag_name).with_for_update().first()
                    if tag:
                        tag.digest = digest
                        tag.size = size
                    else:
                        tag = models.Tag(image_id=image.id, name=tag_name, digest=digest, size=size)
                        self.db.add(tag)
                    image.updated_at = utcnow()
                return to_tag_record(tag, image_name)
            except IntegrityError:
                if attempt == 1:
                    raise
        return None

    def record_pull(self, image_name: str, tag_name: str) -> Optional[TagRecord]:
        with transaction(self.db):
            image = self._query_live_image(image_name).first()
            if not image:
                return None
            tag = self._live_tags_of(image.id).filter(models.Tag.name == tag_name).with_for_update().first()
            if not tag:
                return None
            tag.pull_count = models.Tag.pull_count + 1
            tag.last_pulled_at = utcnow()
            self.db.flush()
            self.db.refresh(tag)
        return to_tag_record(tag, image_name)

    def delete_with_tags(self, name: str) -> Optional[int]:
        now = utcnow()
        try:
            with transaction(self.db):
                image = self._query_live_image(name).with_for_update().first()
                if not image:
                    return None

                # 1. 태그를 먼저 삭제합니다. 도중에 실패하면 전체 트랜잭션이 롤백됩니다.
                tags = self._live_tags_of(image.id).all()
                for tag in tags:
                    self._mark_tag_deleted(tag, now)
                self.db.flush()

                # 2. 아직 살아 있는 경우에만 이미지를 삭제 상태로 표시합니다.
                claimed = live(self.db.query(models.Image), models.Image).filter(
                    models.Image.id == image.id
                ).update(
                    {models.Image.deleted_at: now, models.Image.updated_at: now},
                    synchronize_session=False,
                )
                if claimed == 0:
                    raise _ImageAlreadyClaimed(name)
        except _ImageAlreadyClaimed:
            return None
        return len(tags)

    def delete_tag(self, image_name: str, tag_name: str) -> bool:
        now = utcnow()
        with transaction(self.db):
            image = self._query_live_image(image_name).first()
            if not image:
                return False
            updated = self._live_tags_of(image.id).filter(models.Tag.name == tag_name).update(
                {models.Tag.deleted_at: now},
                synchronize_session=False,
            )
        return updated > 0
