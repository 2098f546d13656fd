import pytest
from fastapi.testclient import TestClient

from catalog.api import create_app
from catalog.library import Library


@pytest.fixture
def lib(tmp_path, request):
    # A fresh database file for every test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    lib = Library(db_file=db_file)
    yield lib
    lib.close()


@pytest.fixture
def client(lib):
    with TestClient(create_app(lib)) as test_client:
        yield test_client
