"""Persistence layer: SQLAlchemy models and the DBStorage wrapper."""
from models.base_model import Base, BaseModel
from models.action_key import ActionKey
from models.db_storage import DBStorage

__all__ = ["Base", "BaseModel", "ActionKey", "DBStorage"]
