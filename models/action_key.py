"""
ActionKey model: one ephemeral signing key per (action_type, email).
Fields:
- action_type, email (composite primary key)
- signing_key (secret; never serialized)
- owner_id (identity provider uid)
- created_at, expires_at
"""
from sqlalchemy import Column, String, DateTime
from models.base_model import BaseModel, Base


class ActionKey(BaseModel, Base):
    __tablename__ = "action_keys"
    __secret_fields__ = ("signing_key",)

    action_type = Column(String(32), primary_key=True)
    email = Column(String(255), primary_key=True)
    signing_key = Column(String(128), nullable=False)
    owner_id = Column(String(128), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self):
        return f"<ActionKey {self.action_type} email={self.email}>"
