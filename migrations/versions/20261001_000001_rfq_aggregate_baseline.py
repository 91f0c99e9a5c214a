"""RFQ aggregate store baseline

Revision ID: 20261001_000001
Revises:
Create Date: 2026-10-01 00:00:01
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

from alembic import op
from sqlalchemy.engine import Connection

from rfq_platform.db import _convert_qmark_to_pg, _drop_schema, _init_db_postgres, _init_db_sqlite


# revision identifiers, used by Alembic.
revision: str = "20261001_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


class _ResultAdapter:
    def __init__(self, result):
        self._result = result

    @property
    def rowcount(self) -> int:
        return int(getattr(self._result, "rowcount", -1))

    @staticmethod
    def _map_row(row):
        if row is None:
            return None
        mapping = getattr(row, "_mapping", None)
        if mapping is not None:
            return dict(mapping)
        return row

    def fetchone(self):
        return self._map_row(self._result.fetchone())

    def fetchall(self):
        return [self._map_row(row) for row in self._result.fetchall()]


class _AlembicDbAdapter:
    """Exposes the Database interface over the migration connection, so the
    schema functions of rfq_platform.db run unchanged inside Alembic."""

    def __init__(self, connection: Connection, backend: str):
        self._connection = connection
        self.backend = backend

    def execute(self, sql: str, params: Iterable | None = None):
        if params is None:
            return _ResultAdapter(self._connection.exec_driver_sql(sql))
        statement = _convert_qmark_to_pg(sql) if self.backend == "postgres" else sql
        return _ResultAdapter(self._connection.exec_driver_sql(statement, tuple(params)))

    def commit(self):
        # Alembic owns the transaction of the migration.
        return None

    def rollback(self):
        return None


def _adapter() -> _AlembicDbAdapter:
    connection = op.get_bind()
    dialect = (connection.dialect.name or "").lower()
    return _AlembicDbAdapter(connection, "postgres" if dialect.startswith("postgres") else "sqlite")


def upgrade() -> None:
    adapter = _adapter()
    if adapter.backend == "postgres":
        _init_db_postgres(adapter)
        return
    _init_db_sqlite(adapter)


def downgrade() -> None:
    _drop_schema(_adapter())
