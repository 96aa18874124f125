from .auth import User, Role, UserRole, SessionToken
from .catalog import Category, Product
from .cart import CartLine
from .orders import Order, OrderItem

__all__ = [
    'User', 'Role', 'UserRole', 'SessionToken',
    'Category', 'Product',
    'CartLine',
    'Order', 'OrderItem',
]
