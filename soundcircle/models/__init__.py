from soundcircle.models.base import Base
from soundcircle.models.friendship import Friendship
from soundcircle.models.user import User

__all__ = [
    "Base",
    "Friendship",
    "User",
]
