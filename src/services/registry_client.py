from typing import Any, Dict, Optional

import requests

from src.services.exceptions import StoreUnavailableError


class RegistryClient:
    """이미지 blob 전송을 담당하는 외부 레지스트리(v2 API)의 상태를 확인합니다."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def info(self) -> Dict[str, Any]:
        """
        레지스트리 v2 엔드포인트에 접근 가능한지 확인하고 기본 정보를 반환합니다.

        Raises:
            StoreUnavailableError: 레지스트리에 연결할 수 없을 때.
        """
        try:
            self.session.get(f"{self.base_url}/v2/", timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"Failed to connect to registry: {e}") from e

        return {
            "version": "2.0",
            "url": self.base_url.split("://", 1)[-1],
            "status": "running",
        }
