from .user import User
from .image import Image
from .tag import Tag

__all__ = ["User", "Image", "Tag"]
