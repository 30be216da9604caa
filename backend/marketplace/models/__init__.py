"""Database models for the dataset marketplace."""
from marketplace.models.user import User
from marketplace.models.category import Category
from marketplace.models.dataset import Dataset
from marketplace.models.cart_item import CartItem
from marketplace.models.purchase import Purchase

__all__ = [
    "User",
    "Category",
    "Dataset",
    "CartItem",
    "Purchase",
]
