from sqlalchemy import Column, Integer, ForeignKey, Text
from sqlalchemy.orm import declarative_base

# Database file name, created under the application-data directory
DB_NAME = "notes.db"

# Table names
USER_TABLE = "user"
NOTE_TABLE = "note"

# Column names
ID_COLUMN = "id"
EMAIL_COLUMN = "email"
USER_ID_COLUMN = "user_id"
TEXT_COLUMN = "text"
IS_SYNCED_WITH_CLOUD_COLUMN = "is_synced_with_cloud"

Base = declarative_base()

# PUBLIC_INTERFACE
class User(Base):
    """
    Database model for a user. Emails are stored lower-cased.
    """
    __tablename__ = USER_TABLE
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(ID_COLUMN, Integer, primary_key=True)
    email = Column(EMAIL_COLUMN, Text, unique=True, nullable=False)


# PUBLIC_INTERFACE
class Note(Base):
    """
    Database model for a note.

    No relationship() back to User: deleting a user leaves its notes in place.
    """
    __tablename__ = NOTE_TABLE
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(ID_COLUMN, Integer, primary_key=True)
    user_id = Column(USER_ID_COLUMN, Integer, ForeignKey(f"{USER_TABLE}.{ID_COLUMN}"), nullable=False)
    text = Column(TEXT_COLUMN, Text, nullable=True)
    is_synced_with_cloud = Column(IS_SYNCED_WITH_CLOUD_COLUMN, Integer, nullable=False, server_default="0")
