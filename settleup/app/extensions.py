"""
extensions.py — Flask extension singletons.

Created here without an app and bound in the factory via init_app(), so
tests can build isolated app instances:

    from settleup.app.extensions import db, ma

Request schemas in app/schemas/ inherit from marshmallow.Schema directly,
never ma.Schema: ma.Schema needs an application context, and the unit suite
loads schemas without one.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ma = Marshmallow()
