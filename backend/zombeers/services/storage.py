"""Key/value snapshot storage with the browser localStorage contract.

``get_item`` returns the stored string or None, ``set_item`` overwrites,
``remove_item`` is a no-op for missing keys. Backend failures surface as
PersistenceError.
"""
from sqlalchemy import Column, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from zombeers.exceptions import PersistenceError

Base = declarative_base()


class StorageItem(Base):
    __tablename__ = 'local_storage'
    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)


class MemoryStorage:
    def __init__(self, items=None):
        self._items = dict(items or {})

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        self._items[key] = value

    def remove_item(self, key):
        self._items.pop(key, None)


class SQLStorage:
    """Snapshot storage in a single SQL table (SQLite file by default)."""

    def __init__(self, url='sqlite:///zombeers-local.db', engine=None):
        try:
            self.engine = engine or create_engine(url)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f'Could not open local storage: {exc}') from exc
        self.Session = sessionmaker(bind=self.engine)

    def get_item(self, key):
        try:
            with self.Session() as session:
                item = session.get(StorageItem, key)
                return item.value if item else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f'Could not read {key}: {exc}') from exc

    def set_item(self, key, value):
        with self.Session() as session:
            try:
                session.merge(StorageItem(key=key, value=value))
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(f'Could not write {key}: {exc}') from exc

    def remove_item(self, key):
        with self.Session() as session:
            try:
                session.query(StorageItem).filter_by(key=key).delete()
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(f'Could not remove {key}: {exc}') from exc

    def close(self):
        self.engine.dispose()
