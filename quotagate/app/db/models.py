from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from quotagate.app.db.base import Base

SUBSCRIPTION_FREE = "FREE"
SUBSCRIPTION_PRO = "PRO"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_email", "email"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    subscription: Mapped[str] = mapped_column(String(20), default=SUBSCRIPTION_FREE)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Chat quota window, owned by the durable counter store
    chat_count: Mapped[int] = mapped_column(Integer, default=0)
    chat_reset_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_pro(self) -> bool:
        return self.subscription == SUBSCRIPTION_PRO

    def __repr__(self) -> str:
        return f"<User(id={self.id}, subscription={self.subscription}, chat_count={self.chat_count})>"
