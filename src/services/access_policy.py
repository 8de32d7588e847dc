from typing import Dict, FrozenSet, Optional

from src.domain.records import TokenClaims


class AccessPolicy:
    """
    작업 이름별 역할 제한 규칙.
    규칙이 없는 작업은 인증된 모든 사용자에게 허용됩니다.
    구체적인 정책은 설정(ACCESS_POLICY)으로 주입하며 코드에 고정하지 않습니다.
    """

    def __init__(self, rules: Optional[Dict[str, FrozenSet[str]]] = None):
        self.rules = dict(rules or {})

    @classmethod
    def from_string(cls, text: str) -> "AccessPolicy":
        """
        'delete_user=admin;create_user=admin,maintainer' 형식의 문자열로 정책을 만듭니다.

        Raises:
            ValueError: 항목 형식이 올바르지 않을 때.
        """
        rules = {}
        for entry in (text or "").split(";"):
            entry = entry.strip()
            if not entry:
                continue
            operation, sep, roles = entry.partition("=")
            if not sep or not operation.strip():
                raise ValueError(f"Invalid access policy entry: '{entry}'")
            rules[operation.strip()] = frozenset(r.strip() for r in roles.split(",") if r.strip())
        return cls(rules)

    def is_allowed(self, claims: TokenClaims, operation: str) -> bool:
        allowed_roles = self.rules.get(operation)
        if allowed_roles is None:
            return True
        return claims.role in allowed_roles
