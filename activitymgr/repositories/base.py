"""
Base repository.

Repositories wrap one open Session. They never commit: the enclosing
`Database.transaction()` owns the transaction boundary.
"""

from sqlmodel import Session, SQLModel


class BaseRepository:
    """Session holder with flush-on-write helpers."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, obj: SQLModel) -> SQLModel:
        """Insert and flush, so generated ids are available right away."""
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj: SQLModel) -> SQLModel:
        # Flushed immediately: statement order must follow call order
        self.session.add(obj)
        self.session.flush()
        return obj

    def delete(self, obj: SQLModel) -> None:
        self.session.delete(obj)
        self.session.flush()
