from .customer import Customer
from .product import Product
