"""
Shared test setup.

Imports every model so SQLAlchemy can resolve string relationship targets
("Membership", "Payment", ...) in unit tests that never build an app.
"""

from settleup.app.models import expense, group, membership, payment, user  # noqa: F401
