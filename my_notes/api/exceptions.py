"""
Errors raised by the notes persistence service.
"""
from typing import Optional


# PUBLIC_INTERFACE
class NotesServiceError(Exception):
    """Base class for every error raised by NotesService."""

    default_message = "Notes service error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class DatabaseAlreadyOpen(NotesServiceError):
    default_message = "Database is already open"


class DatabaseIsNotOpen(NotesServiceError):
    default_message = "Database is not open"


class DirectoryUnavailable(NotesServiceError):
    default_message = "Unable to get the application data directory"


class StorageUnavailable(NotesServiceError):
    default_message = "Unable to open the notes database"


class UserAlreadyExists(NotesServiceError):
    default_message = "User already exists"

    def __init__(self, email: Optional[str] = None):
        super().__init__(f"User already exists: {email}" if email else None)
        self.email = email


class UserNotFound(NotesServiceError):
    default_message = "Could not find user"

    def __init__(self, email: Optional[str] = None):
        super().__init__(f"Could not find user: {email}" if email else None)
        self.email = email


class NoteNotFound(NotesServiceError):
    default_message = "Could not find note"

    def __init__(self, note_id: Optional[int] = None):
        super().__init__(f"Could not find note {note_id}" if note_id is not None else None)
        self.note_id = note_id


class UpdateFailed(NotesServiceError):
    default_message = "Could not update note"

    def __init__(self, note_id: Optional[int] = None):
        super().__init__(f"Could not update note {note_id}" if note_id is not None else None)
        self.note_id = note_id


class DeleteFailed(NotesServiceError):
    default_message = "Could not delete note"

    def __init__(self, note_id: Optional[int] = None):
        super().__init__(f"Could not delete note {note_id}" if note_id is not None else None)
        self.note_id = note_id
