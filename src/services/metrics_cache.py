from typing import Any, Callable, Dict
from datetime import datetime

import redis

from src.domain.records import utcnow
from src.services.exceptions import StoreUnavailableError

IMAGE_COUNT_KEY = "registry:image_count"
TAG_COUNT_KEY = "registry:tag_count"


def create_redis_client(host: str, port: int, timeout: float) -> redis.Redis:
    """네트워크 타임아웃이 설정된 Redis 클라이언트를 생성합니다. 프로세스당 하나를 공유합니다."""
    return redis.Redis(
        host=host,
        port=port,
        db=0,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


class MetricsCache:
    """
    레지스트리 사용량 카운터를 Redis에 보관합니다.
    메타데이터 저장소의 행 개수를 세지 않으므로 두 값은 일시적으로 어긋날 수 있습니다.
    """

    def __init__(self, client: redis.Redis, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.clock = clock

    def get_counter(self, name: str) -> int:
        """
        카운터 값을 조회합니다. 키가 없거나 만료되었거나 숫자가 아니면 0을 반환합니다.

        Raises:
            StoreUnavailableError: Redis에 연결할 수 없을 때.
        """
        try:
            raw = self.client.get(name)
        except redis.RedisError as e:
            raise StoreUnavailableError(f"Metrics cache unavailable: {e}") from e
        if raw is None:
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            return 0

    def increment(self, name: str, amount: int = 1) -> int:
        """
        카운터를 amount만큼 증가(음수면 감소)시키고 새 값을 반환합니다.

        Raises:
            StoreUnavailableError: Redis에 연결할 수 없을 때.
        """
        try:
            return int(self.client.incrby(name, amount))
        except redis.RedisError as e:
            raise StoreUnavailableError(f"Metrics cache unavailable: {e}") from e

    def get_registry_metrics(self) -> Dict[str, Any]:
        return {
            "images": self.get_counter(IMAGE_COUNT_KEY),
            "tags": self.get_counter(TAG_COUNT_KEY),
            "timestamp": self.clock().isoformat(),
        }
