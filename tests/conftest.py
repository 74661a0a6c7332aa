import pytest

from my_notes.api.core import NotesService


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "app-data")


@pytest.fixture
def service(data_dir):
    notes = NotesService(data_dir=data_dir)
    notes.open()
    yield notes
    if notes.is_open:
        notes.close()


@pytest.fixture
def user(service):
    return service.create_user("a@x.com")
