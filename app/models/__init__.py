from .category import Category
from .person import Person
from .moment import Moment, MomentAction
from .profile import UserProfile
from .reflection import Reflection, ReflectionModel
from .streak import Streak

__all__ = [
    "Category",
    "Person",
    "Moment",
    "MomentAction",
    "UserProfile",
    "Reflection",
    "ReflectionModel",
    "Streak",
]
