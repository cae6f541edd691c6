"""
SQLAlchemy ORM models for the memory engine.

Database schema for:
- Stories (conversation threads owned by a user)
- Messages (conversation turns, flagged once facts are extracted)
- Memories (deduplicated facts with embeddings)
"""

from datetime import datetime
from typing import Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

EMBEDDING_DIMENSIONS = 1536

MESSAGE_ROLES = ("system", "user", "assistant")
MEMORY_ACTIONS = ("ADD", "UPDATE", "DELETE")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# =============================================================================
# Stories
# =============================================================================

class Story(Base):
    """
    A conversation thread. Messages reach their user through the story.
    Stories are managed elsewhere; the engine only reads them.
    """
    __tablename__ = "story"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    handler: Mapped[str] = mapped_column(String(50), nullable=False, default="simple")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(back_populates="story")

    __table_args__ = (
        Index("story_user_id_idx", "user_id"),
    )


# =============================================================================
# Messages
# =============================================================================

class Message(Base):
    """
    A single conversation turn.

    `extracted` flips false -> true once the message has been through a
    committed extraction run and is never reset.
    """
    __tablename__ = "message"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("story.id", ondelete="CASCADE"),
        nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # system, user, assistant
    content: Mapped[str] = mapped_column(Text, nullable=False)
    extracted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    story: Mapped["Story"] = relationship(back_populates="messages")

    __table_args__ = (
        Index("message_story_id_idx", "story_id"),
        Index("message_extracted_idx", "extracted"),
        Index("message_story_extracted_idx", "story_id", "extracted"),
    )


# =============================================================================
# Memories (Core Data)
# =============================================================================

class Memory(Base):
    """
    A durable fact about a user.

    `embedding` always matches the current `content`; `prev_content` keeps
    exactly one level of history from the last UPDATE.
    """
    __tablename__ = "memory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Memory content
    content: Mapped[Optional[str]] = mapped_column(Text)
    prev_content: Mapped[Optional[str]] = mapped_column("previous_content", Text)

    # Metadata
    category: Mapped[Optional[str]] = mapped_column(String(50))
    importance: Mapped[Optional[float]] = mapped_column(Float)  # 0-1 scale
    confidence: Mapped[Optional[float]] = mapped_column(Float)  # 0-1 scale
    action: Mapped[Optional[str]] = mapped_column(String(10))  # ADD, UPDATE, DELETE

    embedding: Mapped[Optional[list[float]]] = mapped_column(Vector(EMBEDDING_DIMENSIONS))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        Index("memory_user_idx", "user_id"),
        Index(
            "memory_embedding_cos_idx",
            "embedding",
            postgresql_using="hnsw",
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )
