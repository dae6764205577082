from .zones import Zone
from .inventory import Product, Movement
from .auth import User, SessionToken
from .settings import UserSettings

__all__ = [
    'Zone',
    'Product', 'Movement',
    'User', 'SessionToken',
    'UserSettings',
]
