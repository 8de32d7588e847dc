from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from src.domain.records import TokenClaims, utcnow
from src.services.exceptions import NotFoundError, TokenInvalidError, ValidationError

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(hours=24)


class CredentialManager:
    """
    공유 비밀키로 서명된 베어러 토큰(JWT, HS256)을 발급, 검증, 갱신합니다.
    설정 값 외에는 상태가 없으므로 모든 요청에서 읽기 전용으로 공유해도 안전합니다.
    폐기 목록은 없으며, 유출된 토큰은 만료될 때까지 유효합니다.
    """

    def __init__(self, secret: str, ttl: timedelta = DEFAULT_TOKEN_TTL, clock: Callable[[], datetime] = utcnow):
        if not secret:
            raise ValueError("Token signing secret must not be empty.")
        self._secret = secret
        self.ttl = ttl
        self.clock = clock

    def issue(self, username: str, role: str) -> str:
        """
        사용자 이름과 역할을 담은 토큰을 발급합니다. 만료 시각은 현재 시각 + ttl 입니다.

        Raises:
            ValidationError: 클레임 형태가 올바르지 않을 때.
        """
        if not isinstance(username, str) or not username:
            raise ValidationError("Token username must be a non-empty string.")
        if not isinstance(role, str):
            raise ValidationError("Token role must be a string.")

        expires_at = self.clock() + self.ttl
        payload = {
            "username": username,
            "role": role,
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """
        서명과 만료 시각을 검증하고 클레임을 반환합니다.
        형식 오류, 서명 불일치, 만료, 클레임 형태 오류는 모두 TokenInvalidError 하나로 보고합니다.
        """
        if not isinstance(token, str) or not token:
            raise TokenInvalidError("Token not provided.")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "username", "role"]},
            )
        except jwt.PyJWTError as e:
            raise TokenInvalidError("Invalid token.") from e

        username, role, exp = payload.get("username"), payload.get("role"), payload.get("exp")
        if not isinstance(username, str) or not username or not isinstance(role, str):
            raise TokenInvalidError("Invalid token.")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise TokenInvalidError("Invalid token.")

        return TokenClaims(
            username=username,
            role=role,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    def refresh(self, token: str, lookup_role: Callable[[str], str]) -> str:
        """
        유효한 토큰을 새 만료 시각을 가진 토큰으로 교체합니다.
        역할은 토큰이 아니라 현재 저장소의 값을 사용하므로, 발급 이후 바뀐 역할이 반영됩니다.
        만료된 토큰은 검증 단계에서 거부되므로 갱신되지 않습니다.

        Args:
            token: 기존 베어러 토큰.
            lookup_role: 사용자 이름으로 현재 역할을 조회하는 함수.

        Raises:
            TokenInvalidError: 토큰이 유효하지 않거나 사용자가 더 이상 존재하지 않을 때.
        """
        claims = self.verify(token)
        try:
            current_role = lookup_role(claims.username)
        except NotFoundError as e:
            raise TokenInvalidError("Token subject no longer exists.") from e
        return self.issue(claims.username, current_role)
