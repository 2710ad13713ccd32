"""
SQLAlchemy ORM models package.

All models are imported here so that Base.metadata knows every table
before create_all() runs, and other modules can import from loyalty.models.
"""

from loyalty.models.user import User  # noqa: F401
from loyalty.models.order import Order, OrderStatus, TERMINAL_STATUSES  # noqa: F401
from loyalty.models.withdrawal import Withdrawal  # noqa: F401
from loyalty.models.balance import Balance  # noqa: F401
