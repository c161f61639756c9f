import uuid
import enum
from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, func, Enum
from sqlalchemy.orm import relationship
from .base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Style(str, enum.Enum):
    """
        The fixed set of styles generated for every photo session.
        Iteration order is the order of the aggregate response.
    """
    ANIME = "Anime"
    WATERCOLOR = "Watercolor"
    OIL = "Oil"
    DISNEY = "Disney"


class Event(Base):
    """
        Model for the events table. Owned by a user; may carry a logo
        stored in object storage.
    """
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    # --- Object storage key of the event logo ---
    logo_url = Column(String, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    sessions = relationship("PhotoSession", back_populates="event")

    def __repr__(self):
        return f"<Event(id='{self.id}', name='{self.name}')>"


class PhotoSession(Base):
    """
        Model for the photo_sessions table: one booth capture within an event.
    """
    __tablename__ = "photo_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    event = relationship("Event", back_populates="sessions")
    ai_photos = relationship("AIPhoto", back_populates="photo_session")

    def __repr__(self):
        return f"<PhotoSession(id='{self.id}', event_id='{self.event_id}')>"


class AIPhoto(Base):
    """
        Model for the ai_photos table: one styled result per style per session.
        ``generated_url`` stays empty until the style's pipeline has stored
        its final image.
    """
    __tablename__ = "ai_photos"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(36), ForeignKey("photo_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    style = Column(Enum(Style), nullable=False)
    # --- Object storage key of the final image ---
    generated_url = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    photo_session = relationship("PhotoSession", back_populates="ai_photos")

    def __repr__(self):
        return f"<AIPhoto(id='{self.id}', style='{self.style}')>"
