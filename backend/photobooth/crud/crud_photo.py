from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from photobooth.db.models import AIPhoto, Event, PhotoSession, Style


async def get_event_by_id(db: AsyncSession, *, event_id: str, user_id: str) -> Event | None:
    """
    Retrieve a non-deleted event owned by the given user.
    """
    statement = select(Event).where(
        Event.id == event_id,
        Event.user_id == user_id,
        Event.is_deleted.is_(False),
    )
    result = await db.execute(statement)
    return result.scalars().first()


async def get_photo_session_by_id(db: AsyncSession, *, session_id: str, user_id: str) -> PhotoSession | None:
    """
    Retrieve a photo session whose event belongs to the given user.
    """
    statement = (
        select(PhotoSession)
        .join(Event, PhotoSession.event_id == Event.id)
        .where(
            PhotoSession.id == session_id,
            Event.user_id == user_id,
            Event.is_deleted.is_(False),
        )
    )
    result = await db.execute(statement)
    return result.scalars().first()


async def create_ai_photo(db: AsyncSession, *, session_id: str, style: Style) -> AIPhoto:
    """
    Create the record for one style with an empty URL; it is filled in once
    the styled image has been stored.
    """
    db_photo = AIPhoto(session_id=session_id, style=style, generated_url="")
    db.add(db_photo)
    await db.commit()
    await db.refresh(db_photo)
    return db_photo


async def update_ai_photo_url(db: AsyncSession, *, ai_photo_id: str, generated_url: str) -> AIPhoto | None:
    """
    Attach the final storage path to a style record.

    Returns the updated record or None if not found.
    """
    result = await db.execute(select(AIPhoto).where(AIPhoto.id == ai_photo_id))
    photo = result.scalars().first()
    if not photo:
        return None

    photo.generated_url = generated_url
    db.add(photo)
    await db.commit()
    await db.refresh(photo)
    return photo


class PhotoRecordStore:
    """
    Persistence boundary used by the generation pipeline.

    Opens one session per call so concurrent style tasks never share an
    ``AsyncSession``.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_event_by_id(self, event_id: str, user_id: str) -> Event | None:
        async with self._session_factory() as db:
            return await get_event_by_id(db, event_id=event_id, user_id=user_id)

    async def get_photo_session_by_id(self, session_id: str, user_id: str) -> PhotoSession | None:
        async with self._session_factory() as db:
            return await get_photo_session_by_id(db, session_id=session_id, user_id=user_id)

    async def create_styled_photo_record(self, session_id: str, style: Style) -> AIPhoto:
        async with self._session_factory() as db:
            return await create_ai_photo(db, session_id=session_id, style=style)

    async def update_styled_photo_record_url(self, record_id: str, storage_path: str) -> AIPhoto:
        async with self._session_factory() as db:
            photo = await update_ai_photo_url(db, ai_photo_id=record_id, generated_url=storage_path)
        if photo is None:
            raise LookupError(f"AI photo record {record_id} no longer exists")
        return photo
