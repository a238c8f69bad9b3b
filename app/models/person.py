"""
Person — someone kindness was given to or received from.

`merged_into` forms a merge chain: when A is merged into B, A's moments are
repointed to B and A keeps a pointer to B. Chains are resolved in
app/services/event_store.py by iterative pointer-chasing.

aliases: JSON-encoded list stored as Text.
"""
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Person(Base):
    __tablename__ = "people"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    aliases: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON array of alternative names"
    )
    merged_into: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("people.id", ondelete="SET NULL"), nullable=True
    )
