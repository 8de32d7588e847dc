# src/utils/password_hasher.py
import bcrypt

from src.services.exceptions import ValidationError

# bcrypt는 72바이트 이후를 무시하거나 거부하므로 입력 단계에서 막습니다.
MAX_SECRET_BYTES = 72


class PasswordHasher:
    """bcrypt 기반의 솔트 해시 생성 및 검증."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        encoded = self._encode(secret)
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, secret_hash: str) -> bool:
        """평문 비밀번호가 저장된 해시와 일치하는지 확인합니다. 해시가 손상된 경우 False."""
        if not secret or not secret_hash:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
        except ValueError:
            return False

    def _encode(self, secret: str) -> bytes:
        if not isinstance(secret, str) or not secret:
            raise ValidationError("Secret must be a non-empty string.")
        encoded = secret.encode("utf-8")
        if len(encoded) > MAX_SECRET_BYTES:
            raise ValidationError(f"Secret must be at most {MAX_SECRET_BYTES} bytes.")
        return encoded
