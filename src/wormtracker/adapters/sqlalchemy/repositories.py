"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, select

from wormtracker.adapters.sqlalchemy.mappings import mirror_snapshot_table, store_link_table
from wormtracker.domain.ports import MirrorRepository, MirrorSnapshot, StoreLinkRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class SqlAlchemyMirrorRepository(MirrorRepository):
    """One snapshot row per context; saving replaces the previous row."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, context_id: str) -> MirrorSnapshot | None:
        stmt = select(
            mirror_snapshot_table.c.store_id,
            mirror_snapshot_table.c.documents,
            mirror_snapshot_table.c.saved_at,
        ).where(mirror_snapshot_table.c.context_id == context_id)
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        store_id, documents, saved_at = row
        decoded = json.loads(documents)
        if not isinstance(decoded, dict):
            return None
        return MirrorSnapshot(
            context_id=context_id,
            store_id=store_id,
            documents=cast("dict[str, object]", decoded),
            saved_at=saved_at,
        )

    def save(self, snapshot: MirrorSnapshot) -> None:
        self.delete(snapshot.context_id)
        self.session.execute(
            mirror_snapshot_table.insert().values(
                context_id=snapshot.context_id,
                store_id=snapshot.store_id,
                documents=json.dumps(snapshot.documents),
                saved_at=snapshot.saved_at,
            )
        )

    def delete(self, context_id: str) -> None:
        self.session.execute(
            delete(mirror_snapshot_table).where(mirror_snapshot_table.c.context_id == context_id)
        )


class SqlAlchemyStoreLinkRepository(StoreLinkRepository):
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, context_id: str) -> str | None:
        stmt = select(store_link_table.c.store_id).where(
            store_link_table.c.context_id == context_id
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def link(self, context_id: str, store_id: str, *, now: datetime | None = None) -> None:
        self.session.execute(
            delete(store_link_table).where(store_link_table.c.context_id == context_id)
        )
        self.session.execute(
            store_link_table.insert().values(
                context_id=context_id,
                store_id=store_id,
                linked_at=now or datetime.now(UTC),
            )
        )

    def last_used(self) -> str | None:
        stmt = (
            select(store_link_table.c.store_id)
            .order_by(store_link_table.c.linked_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()
