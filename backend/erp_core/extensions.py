# Overview: Shared SQLAlchemy and Flask-Migrate instances, bound in create_app().

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Unnamed keys and indexes get deterministic names so migrations can drop them
metadata = MetaData(naming_convention={
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
})

db = SQLAlchemy(metadata=metadata)

# SQLite cannot ALTER constraints in place; batch mode recreates the table
migrate = Migrate(render_as_batch=True, compare_type=True)
