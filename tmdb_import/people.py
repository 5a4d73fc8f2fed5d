"""
Person resolution shared by every movie of one import run.

A person referenced by many movies is fetched from TMDB at most once per
run. Detail fetches happen before the unit's transaction opens, so no
network wait ever holds a database lock. Internal ids become visible to
other workers only after the unit of work that wrote them has committed.
"""

from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.engine import Connection

from . import schema
from .client import TMDBClient
from .database import DatabaseManager
from .models import CreditData, PersonData
from .utils import AtomicCounter


def _person_from(detail: Optional[dict], credit: CreditData) -> PersonData:
    if detail:
        return PersonData.from_tmdb(detail, credit)
    return PersonData.from_credit(credit)


class PersonCache:
    """
    Per-run person memo.

    Resolution order for one credit: ids already resolved in this unit,
    ids published by committed units, the person table, and only then the
    person prepared from a detail fetched by ``prefetch``.

    Detail payloads are kept only while a unit that fetched them is in
    flight; once the unit ends its people are either published or dropped.
    """

    def __init__(self, client: TMDBClient, db: DatabaseManager):
        self.client = client
        self.db = db
        self._ids: Dict[int, int] = {}
        self._details: Dict[int, Optional[dict]] = {}
        self._fetch_locks: Dict[int, Lock] = {}
        self._lock = Lock()
        self.fetch_count = AtomicCounter()

    def published_id(self, tmdb_id: int) -> Optional[int]:
        """Internal id of a person written by a committed unit of this run."""
        with self._lock:
            return self._ids.get(tmdb_id)

    def prefetch(self, credits: List[CreditData]) -> Dict[int, PersonData]:
        """
        Prepare the people of one movie that have no row yet.

        Runs outside any transaction: published ids and the person table are
        checked first, and a /person/{id} detail is fetched only for the
        remaining ids.

        Args:
            credits: Cast and crew of the movie

        Returns:
            Person rows to write, by TMDB id
        """
        first_credit: Dict[int, CreditData] = {}
        for credit in credits:
            first_credit.setdefault(credit.person_tmdb_id, credit)

        unknown = [tmdb_id for tmdb_id in first_credit if self.published_id(tmdb_id) is None]
        if not unknown:
            return {}
        stored = self.db.stored_tmdb_ids(schema.person, unknown)

        pending: Dict[int, PersonData] = {}
        try:
            for tmdb_id in sorted(set(unknown) - stored):
                fetched, detail = self._detail_unless_published(tmdb_id)
                if fetched:
                    pending[tmdb_id] = _person_from(detail, first_credit[tmdb_id])
        except Exception:
            self.release(pending)
            raise
        return pending

    def resolve(
        self,
        conn: Connection,
        credit: CreditData,
        local_ids: Dict[int, int],
        pending: Dict[int, PersonData],
        department_ids: Optional[Dict[str, int]] = None,
    ) -> int:
        """
        Internal person id for a cast/crew entry.

        Args:
            conn: Connection of the unit's transaction
            credit: Cast or crew entry referencing the person
            local_ids: Ids resolved so far by the same unit (updated in place)
            pending: People prepared by ``prefetch`` for this unit
            department_ids: Departments already upserted by the unit

        Returns:
            Internal person id
        """
        tmdb_id = credit.person_tmdb_id
        if tmdb_id in local_ids:
            return local_ids[tmdb_id]

        person_id = self.published_id(tmdb_id)
        if person_id is None:
            person_id = self.db.find_id_by_tmdb(conn, schema.person, tmdb_id)
        if person_id is None:
            person = pending.get(tmdb_id)
            if person is None:
                # Row vanished after prefetch checked the table
                person = _person_from(self.get_detail(tmdb_id), credit)
            person_id = self.db.upsert_person(conn, person, department_ids)

        local_ids[tmdb_id] = person_id
        return person_id

    def get_detail(self, tmdb_id: int) -> Optional[dict]:
        """
        Person detail payload, fetched once while any unit needs it.

        Concurrent callers for the same id wait for the first fetch. A failed
        fetch is not remembered, so a later unit may try again.
        """
        return self._fetch(tmdb_id, skip_published=False)[1]

    def _detail_unless_published(self, tmdb_id: int) -> Tuple[bool, Optional[dict]]:
        return self._fetch(tmdb_id, skip_published=True)

    def _fetch(self, tmdb_id: int, skip_published: bool) -> Tuple[bool, Optional[dict]]:
        with self._lock:
            if tmdb_id in self._details:
                return True, self._details[tmdb_id]
            key_lock = self._fetch_locks.setdefault(tmdb_id, Lock())

        with key_lock:
            with self._lock:
                if tmdb_id in self._details:
                    return True, self._details[tmdb_id]
                # Another unit committed this person while we waited
                if skip_published and tmdb_id in self._ids:
                    return False, None
            self.fetch_count.increment()
            try:
                detail = self.client.fetch_person_details(tmdb_id)
                with self._lock:
                    self._details[tmdb_id] = detail
            finally:
                with self._lock:
                    self._fetch_locks.pop(tmdb_id, None)
            return True, detail

    def publish(self, local_ids: Dict[int, int]) -> None:
        """Share ids of a committed unit with the rest of the run."""
        with self._lock:
            self._ids.update(local_ids)

    def release(self, tmdb_ids: Iterable[int]) -> None:
        """Forget the detail payloads a finished unit fetched."""
        with self._lock:
            for tmdb_id in tmdb_ids:
                self._details.pop(tmdb_id, None)
