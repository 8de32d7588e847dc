# src/services/exceptions.py

# --- Not Found ---
class NotFoundError(Exception):
    """요청한 리소스를 찾을 수 없을 때"""
    pass

class UserNotFoundError(NotFoundError):
    """사용자를 찾을 수 없을 때"""
    pass

class ImageNotFoundError(NotFoundError):
    """이미지를 찾을 수 없을 때"""
    pass

class TagNotFoundError(NotFoundError):
    """이미지에 해당 태그가 없을 때"""
    pass

# --- Conflict ---
class ConflictError(Exception):
    """자연 키(사용자 이름, 이미지 이름)가 이미 사용 중일 때"""
    pass

class UserAlreadyExistsError(ConflictError):
    """사용자 이름이 이미 존재할 때"""
    pass

class ImageAlreadyExistsError(ConflictError):
    """이미지 이름이 이미 존재할 때"""
    pass

# --- Validation ---
class ValidationError(Exception):
    """입력 값이 형식에 맞지 않을 때"""
    pass

# --- Auth Exceptions ---
class TokenInvalidError(Exception):
    """토큰이 없거나, 형식이 잘못되었거나, 서명이 다르거나, 만료되었을 때"""
    pass

class AuthenticationError(Exception):
    """사용자 자격 증명 실패 시"""
    pass

class PermissionDeniedError(Exception):
    """접근 정책이 해당 작업을 허용하지 않을 때"""
    pass

# --- Infrastructure ---
class StoreUnavailableError(Exception):
    """데이터베이스, 캐시 또는 외부 레지스트리에 접근할 수 없을 때"""
    pass
