import os
import sqlite3
from pathlib import Path
from typing import Iterable

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


DEFAULT_TENANT_ID = "tenant-demo"

RFQ_STATUS_CHECK = "'draft','published','closed','awarded','cancelled','expired'"


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        if self.backend == "postgres" and self._conn.autocommit:
            return
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    parent = Path(db_path).parent
    if str(parent) and not parent.exists():
        os.makedirs(parent, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def connect_database(db_path: str) -> Database:
    """Connection outside a request, for background jobs and scripts."""
    return _connect_database(db_path)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def get_read_db():
    if "db_read" not in g:
        db_path = current_app.config.get("DATABASE_READ_URL") or current_app.config["DB_PATH"]
        g.db_read = _connect_database(db_path)
    return g.db_read


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()
    db_read = g.pop("db_read", None)
    if db_read is not None:
        db_read.close()


def init_db():
    db = get_db()
    if db.backend == "postgres":
        _init_db_postgres(db)
        return

    _init_db_sqlite(db)
    db.commit()


def _init_db_sqlite(db: Database):
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS tenants (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS suppliers (
            id TEXT NOT NULL,
            tenant_id TEXT NOT NULL,
            name TEXT NOT NULL,
            email TEXT,
            scoring_signals TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (tenant_id, id)
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS rfqs (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL,
            rfq_number TEXT NOT NULL,
            title TEXT NOT NULL,
            category TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ({RFQ_STATUS_CHECK})),
            visibility TEXT NOT NULL DEFAULT 'public',
            buyer_id TEXT NOT NULL,
            buyer_company_id TEXT,
            due_date TEXT NOT NULL,
            quote_count INTEGER NOT NULL DEFAULT 0,
            awarded_to TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            document TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (tenant_id, rfq_number)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS rfq_number_sequences (
            tenant_id TEXT NOT NULL,
            period TEXT NOT NULL,
            last_value INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (tenant_id, period)
        )
        """
    )

    _create_rfq_indexes(db)


def _init_db_postgres(db: Database) -> None:
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS tenants (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS suppliers (
            id TEXT NOT NULL,
            tenant_id TEXT NOT NULL,
            name TEXT NOT NULL,
            email TEXT,
            scoring_signals TEXT NOT NULL DEFAULT '{}',
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (tenant_id, id)
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS rfqs (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL,
            rfq_number TEXT NOT NULL,
            title TEXT NOT NULL,
            category TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ({RFQ_STATUS_CHECK})),
            visibility TEXT NOT NULL DEFAULT 'public',
            buyer_id TEXT NOT NULL,
            buyer_company_id TEXT,
            due_date TEXT NOT NULL,
            quote_count INTEGER NOT NULL DEFAULT 0,
            awarded_to TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            document TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (tenant_id, rfq_number)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS rfq_number_sequences (
            tenant_id TEXT NOT NULL,
            period TEXT NOT NULL,
            last_value INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (tenant_id, period)
        )
        """
    )

    _create_rfq_indexes(db)
    _create_postgres_updated_at_triggers(db)


def _create_rfq_indexes(db: Database) -> None:
    db.execute("CREATE INDEX IF NOT EXISTS idx_rfqs_tenant_status ON rfqs (tenant_id, status)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_rfqs_tenant_due_date ON rfqs (tenant_id, due_date)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_rfqs_tenant_category ON rfqs (tenant_id, category)")


def _create_postgres_updated_at_triggers(db: Database) -> None:
    db.execute(
        """
        CREATE OR REPLACE FUNCTION set_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = CURRENT_TIMESTAMP;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    for table in ("suppliers", "rfqs"):
        db.execute(
            f"""
            DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table};
            CREATE TRIGGER trg_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION set_updated_at();
            """
        )


def _drop_schema(db: Database) -> None:
    for table in ("rfq_number_sequences", "rfqs", "suppliers", "tenants"):
        db.execute(f"DROP TABLE IF EXISTS {table}")
    if db.backend == "postgres":
        db.execute("DROP FUNCTION IF EXISTS set_updated_at()")


def _table_exists(db: Database, table: str) -> bool:
    if db.backend == "postgres":
        row = db.execute(
            """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_name = ?
            """,
            (table,),
        ).fetchone()
        return row is not None

    row = db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def ensure_tenant(db: Database, tenant_id: str, name: str | None = None) -> None:
    if db.backend == "postgres":
        db.execute(
            "INSERT INTO tenants (id, name) VALUES (?, ?) ON CONFLICT (id) DO NOTHING",
            (tenant_id, name or tenant_id),
        )
        return
    db.execute("INSERT OR IGNORE INTO tenants (id, name) VALUES (?, ?)", (tenant_id, name or tenant_id))


def _ensure_demo_suppliers(db, tenant_id: str = DEFAULT_TENANT_ID):
    existing = db.execute(
        """
        SELECT id, name, tenant_id
        FROM suppliers
        WHERE tenant_id = ?
        ORDER BY id
        LIMIT 3
        """,
        (tenant_id,),
    ).fetchall()
    if existing:
        return existing

    ensure_tenant(db, tenant_id, "Workspace demo")
    demo_suppliers = [
        ("sup-atlas", "Fornecedor Atlas", '{"quality": 82, "delivery": 74}'),
        ("sup-nexo", "Fornecedor Nexo", '{"quality": 65, "delivery": 90, "certification": 70}'),
        ("sup-prisma", "Fornecedor Prisma", "{}"),
    ]
    for supplier_id, name, signals in demo_suppliers:
        db.execute(
            "INSERT INTO suppliers (id, tenant_id, name, scoring_signals) VALUES (?, ?, ?, ?)",
            (supplier_id, tenant_id, name, signals),
        )
    return db.execute(
        """
        SELECT id, name, tenant_id
        FROM suppliers
        WHERE tenant_id = ?
        ORDER BY id
        LIMIT 3
        """,
        (tenant_id,),
    ).fetchall()
