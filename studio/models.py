"""
studio/models.py
----------------
Importing this module registers every model with SQLAlchemy metadata
(used by CLI commands that run db.create_all()).
"""
from studio.auth.models import User, RoleEnum  # noqa: F401
from studio.customers.models import Customer  # noqa: F401
from studio.products.models import Product  # noqa: F401
from studio.orders.models import Order, OrderItem, OrderStatusHistory  # noqa: F401
from studio.loyalty.models import Referral, PointHistory, LevelHistory  # noqa: F401
