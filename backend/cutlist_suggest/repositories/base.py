"""Generic base repository with reusable data-access helpers."""

from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from cutlist_suggest.database import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Thin data-access layer over SQLAlchemy.

    Subclasses add domain-specific queries.
    Repositories only modify the session (add/delete/flush) - the caller
    controls when to commit or rollback.
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model

    # ── reads ────────────────────────────────────────────────────────

    def _query(self) -> Query:
        return self.db.query(self.model)

    def get_row(self, id: int) -> Optional[T]:
        return self._query().filter(self.model.id == id).first()

    def get_rows(self, *, limit: Optional[int] = None) -> List[T]:
        q = self._query().order_by(self.model.id)
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def count(self) -> int:
        return self._query().count()

    # ── writes ───────────────────────────────────────────────────────

    def add_row(self, obj: T) -> T:
        """Add object to session (caller must commit)."""
        self.db.add(obj)
        self.db.flush()  # Assigns ID without committing
        return obj
