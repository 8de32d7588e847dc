from .user import IUserRepository
from .image import IImageRepository

__all__ = ["IUserRepository", "IImageRepository"]
