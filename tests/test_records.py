import pytest
from sqlalchemy import create_engine, text

from compressor_service.errors import RecordUpdateError
from compressor_service.records import DatabaseRecordStore, NullRecordStore


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'records.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE images (id INTEGER PRIMARY KEY, image_url TEXT)"))
        conn.execute(text("INSERT INTO images (id, image_url) VALUES (1, 'http://x/a.jpg')"))
    yield engine
    engine.dispose()


def test_update_rewrites_locator(engine):
    DatabaseRecordStore(engine).update(1, "https://cdn/compressed_a.jpg")
    with engine.connect() as conn:
        value = conn.execute(text("SELECT image_url FROM images WHERE id = 1")).scalar_one()
    assert value == "https://cdn/compressed_a.jpg"


def test_update_unknown_id_raises(engine):
    with pytest.raises(RecordUpdateError) as excinfo:
        DatabaseRecordStore(engine).update(99, "https://cdn/x.jpg")
    assert excinfo.value.identifier == 99


def test_update_database_error_raises(engine):
    store = DatabaseRecordStore(engine, table_name="missing_table")
    with pytest.raises(RecordUpdateError):
        store.update(1, "https://cdn/x.jpg")


def test_null_record_store_is_noop():
    assert NullRecordStore().update(1, "anything") is None
