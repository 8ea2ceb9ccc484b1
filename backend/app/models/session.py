"""
Authenticated browser session model.

One row per live login. The opaque ``token`` is the only lookup key used by
the authentication gate; ``id`` is the internal row id used by admin tools.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    token = Column(String(128), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Identity provider credentials kept for delegated calls on the user's behalf
    delegated_access_token = Column(Text, nullable=True)
    delegated_refresh_token = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_activity = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<AuthSession(id={self.id}, user_id={self.user_id}, token='{self.token[:12]}...')>"
