import logging
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from my_notes.api.exceptions import (
    DatabaseAlreadyOpen, DatabaseIsNotOpen, StorageUnavailable,
    UserAlreadyExists, UserNotFound, NoteNotFound, UpdateFailed, DeleteFailed,
)
from my_notes.api.feed import NoteFeed, NoteSubscription
from my_notes.db.db import (
    create_notes_engine, create_session, create_tables, get_app_data_dir, get_db_path,
)
from my_notes.db.models import User, Note

logger = logging.getLogger(__name__)

# ==== Value objects ====

# PUBLIC_INTERFACE
class UserRead(BaseModel):
    """A stored user. Two users are equal when their ids match."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str

    # PUBLIC_INTERFACE
    @classmethod
    def from_row(cls, row: Any) -> "UserRead":
        """Build from a column-name mapping or a User row object."""
        if isinstance(row, Mapping):
            row = dict(row)
        return cls.model_validate(row)

    def __eq__(self, other):
        if not isinstance(other, UserRead):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return f"Person, ID = {self.id}, email = {self.email}"


# PUBLIC_INTERFACE
class NoteRead(BaseModel):
    """
    A stored note. Equality uses the id only.

    is_synced_with_cloud is stored as 0/1; a NULL text reads back as "".
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    text: str = ""
    is_synced_with_cloud: bool = True

    @field_validator("text", mode="before")
    @classmethod
    def _null_text_is_empty(cls, value):
        return "" if value is None else value

    # PUBLIC_INTERFACE
    @classmethod
    def from_row(cls, row: Any) -> "NoteRead":
        """Build from a column-name mapping or a Note row object."""
        if isinstance(row, Mapping):
            row = dict(row)
        return cls.model_validate(row)

    def __eq__(self, other):
        if not isinstance(other, NoteRead):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return (
            f"Note, ID = {self.id}, userID = {self.user_id}, "
            f"isSyncedWithCloud = {self.is_synced_with_cloud}\ntext: {self.text}"
        )


# ==== Persistence service ====

# PUBLIC_INTERFACE
class NotesService:
    """
    Local persistence for users and notes.

    Owns one SQLite connection and an in-memory list of every note in the
    database. Each change to that list is broadcast in full on the notes feed
    (see all_notes()). The cache only drives the feed: reads always go to the
    database. The cache is not scoped per user; one signed-in user at a time
    is assumed.

    Any operation other than open()/close() opens the database on demand.
    """

    def __init__(
        self,
        data_dir: Optional[str] = None,
        directory_provider: Optional[Callable[[], str]] = None,
    ):
        if directory_provider is None and data_dir is not None:
            directory_provider = lambda: data_dir  # noqa: E731
        self._directory_provider = directory_provider
        self._engine: Optional[Engine] = None
        self._db: Optional[Session] = None
        self._notes: List[NoteRead] = []
        self._notes_feed: NoteFeed[NoteRead] = NoteFeed()
        self.db_path: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def cached_notes(self) -> Tuple[NoteRead, ...]:
        return tuple(self._notes)

    @property
    def notes_feed(self) -> NoteFeed[NoteRead]:
        return self._notes_feed

    # PUBLIC_INTERFACE
    def all_notes(self) -> NoteSubscription[NoteRead]:
        """
        Subscribe to the full note list.

        The subscription starts with the latest published list (if any) and
        then receives one list per change, in order.
        """
        return self._notes_feed.subscribe()

    def _get_database_or_throw(self) -> Session:
        db = self._db
        if db is None:
            raise DatabaseIsNotOpen()
        return db

    def _ensure_db_is_open(self) -> None:
        try:
            self.open()
        except DatabaseAlreadyOpen:
            pass

    def _publish(self) -> None:
        self._notes_feed.publish(self._notes)

    def _cache_note(self, note: NoteRead) -> None:
        self._notes = [n for n in self._notes if n.id != note.id]
        self._notes.append(note)

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _query_all_notes(db: Session) -> List[NoteRead]:
        return [NoteRead.from_row(n) for n in db.query(Note).order_by(Note.id).all()]

    @staticmethod
    def _fetch_note(db: Session, note_id: int) -> NoteRead:
        note = db.query(Note).filter(Note.id == note_id).first()
        if note is None:
            logger.warning(f"Note {note_id} not found")
            raise NoteNotFound(note_id)
        return NoteRead.from_row(note)

    # PUBLIC_INTERFACE
    def open(self) -> None:
        """
        Open (or create) notes.db in the application data directory, create
        the tables if needed, load every note into the cache and publish it.

        Raises DatabaseAlreadyOpen, DirectoryUnavailable or StorageUnavailable.
        """
        if self._db is not None:
            raise DatabaseAlreadyOpen()
        data_dir = get_app_data_dir(self._directory_provider)
        db_path = get_db_path(data_dir)

        engine = None
        db = None
        try:
            engine = create_notes_engine(db_path)
            create_tables(engine)
            db = create_session(engine)
            notes = self._query_all_notes(db)
        except (SQLAlchemyError, OSError) as e:
            if db is not None:
                db.close()
            if engine is not None:
                engine.dispose()
            logger.error(f"Unable to open notes database at {db_path}: {e}")
            raise StorageUnavailable(f"Unable to open notes database at {db_path}: {e}") from e

        self._engine = engine
        self._db = db
        self.db_path = db_path
        self._notes = notes
        self._publish()
        logger.info(f"Opened notes database at {db_path} with {len(notes)} notes")

    # PUBLIC_INTERFACE
    def close(self) -> None:
        """Close the connection. The cache is left as it was."""
        db = self._db
        if db is None:
            raise DatabaseIsNotOpen()
        db.close()
        if self._engine is not None:
            self._engine.dispose()
        self._db = None
        self._engine = None
        logger.info(f"Closed notes database at {self.db_path}")

    # PUBLIC_INTERFACE
    def get_or_create_user(self, email: str) -> UserRead:
        """Return the user with this email, creating it if it does not exist."""
        try:
            return self.get_user(email)
        except UserNotFound:
            return self.create_user(email)

    # PUBLIC_INTERFACE
    def create_user(self, email: str) -> UserRead:
        """Create a new user, raises UserAlreadyExists if the email is taken (case-insensitive)."""
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        email_key = email.lower()
        existing = db.query(User).filter(User.email == email_key).first()
        if existing:
            logger.warning(f"User {email_key} already exists")
            raise UserAlreadyExists(email)
        db_user = User(email=email_key)
        db.add(db_user)
        try:
            self._commit(db)
        except IntegrityError as e:
            logger.warning(f"User {email_key} was inserted concurrently")
            raise UserAlreadyExists(email) from e
        db.refresh(db_user)
        logger.debug(f"Created user {db_user.id} ({email_key})")
        return UserRead(id=db_user.id, email=email)

    # PUBLIC_INTERFACE
    def get_user(self, email: str) -> UserRead:
        """Get a user by email address (case-insensitive), raises UserNotFound."""
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        user = db.query(User).filter(User.email == email.lower()).first()
        if user is None:
            raise UserNotFound(email)
        return UserRead.from_row(user)

    # PUBLIC_INTERFACE
    def delete_user(self, email: str) -> None:
        """
        Delete a user by email, raises UserNotFound.

        The user's notes are kept (orphaned), and the note cache is untouched.
        """
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        deleted_count = db.query(User).filter(User.email == email.lower()).delete(synchronize_session=False)
        if deleted_count != 1:
            db.rollback()
            logger.warning(f"Could not delete user {email}: {deleted_count} rows matched")
            raise UserNotFound(email)
        self._commit(db)
        logger.debug(f"Deleted user {email.lower()}")

    # PUBLIC_INTERFACE
    def create_note(self, owner: UserRead) -> NoteRead:
        """
        Create an empty, synced note for owner.

        owner must match the stored user with the same email (by id), else
        UserNotFound is raised.
        """
        self._ensure_db_is_open()
        db = self._get_database_or_throw()

        db_user = self.get_user(owner.email)
        if db_user != owner:
            logger.warning(f"Owner {owner.id} does not match stored user {db_user.id} for {owner.email}")
            raise UserNotFound(owner.email)

        text = ""
        db_note = Note(user_id=owner.id, text=text, is_synced_with_cloud=1)
        db.add(db_note)
        self._commit(db)
        db.refresh(db_note)

        note = NoteRead(id=db_note.id, user_id=owner.id, text=text, is_synced_with_cloud=True)
        self._notes.append(note)
        self._publish()
        logger.debug(f"Created note {note.id} for user {owner.id}")
        return note

    # PUBLIC_INTERFACE
    def get_note(self, note_id: int) -> NoteRead:
        """Read a note from the database, refresh it in the cache and publish."""
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        note = self._fetch_note(db, note_id)
        self._cache_note(note)
        self._publish()
        return note

    # PUBLIC_INTERFACE
    def get_all_notes(self) -> List[NoteRead]:
        """Every note in the database. The cache is not touched."""
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        return self._query_all_notes(db)

    # PUBLIC_INTERFACE
    def update_note(self, note: NoteRead, text: str) -> NoteRead:
        """
        Replace the text of an existing note and mark it as not synced.

        Raises NoteNotFound before writing if the note does not exist.
        """
        self._ensure_db_is_open()
        db = self._get_database_or_throw()

        self._fetch_note(db, note.id)
        updates_count = db.query(Note).filter(Note.id == note.id).update(
            {Note.text: text, Note.is_synced_with_cloud: 0},
            synchronize_session=False,
        )
        if updates_count == 0:
            db.rollback()
            raise UpdateFailed(note.id)
        self._commit(db)

        updated_note = self._fetch_note(db, note.id)
        self._cache_note(updated_note)
        self._publish()
        logger.debug(f"Updated note {note.id}")
        return updated_note

    # PUBLIC_INTERFACE
    def delete_note(self, note_id: int) -> None:
        """Delete a note, raises DeleteFailed. Publishes only if the note was cached."""
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        deleted_count = db.query(Note).filter(Note.id == note_id).delete(synchronize_session=False)
        if deleted_count == 0:
            db.rollback()
            logger.warning(f"Could not delete note {note_id}")
            raise DeleteFailed(note_id)
        self._commit(db)

        count_before = len(self._notes)
        self._notes = [n for n in self._notes if n.id != note_id]
        if len(self._notes) != count_before:
            self._publish()
        logger.debug(f"Deleted note {note_id}")

    # PUBLIC_INTERFACE
    def delete_all_notes(self) -> int:
        """Delete every note and return how many were deleted. Always publishes."""
        self._ensure_db_is_open()
        db = self._get_database_or_throw()
        number_of_deletions = db.query(Note).delete(synchronize_session=False)
        self._commit(db)
        self._notes = []
        self._publish()
        logger.debug(f"Deleted all notes ({number_of_deletions})")
        return number_of_deletions


# PUBLIC_INTERFACE
@contextmanager
def open_notes_service(data_dir: Optional[str] = None) -> Iterator[NotesService]:
    """
    Yields an opened NotesService and closes it afterwards.
    Example usage:
        with open_notes_service() as notes:
            user = notes.get_or_create_user(email)
    """
    service = NotesService(data_dir=data_dir)
    service.open()
    try:
        yield service
    finally:
        if service.is_open:
            service.close()
