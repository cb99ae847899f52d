"""
Shared fixtures: an in-memory SQLite store and an in-process fake service.
"""

from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from table_probe.metadata.database import Database
from table_probe.models import ColumnMetadata, TableRef

ORDERS = TableRef("main", "orders")
CUSTOMERS = TableRef("main", "customers")


def now_iso():
    return datetime.now(timezone.utc).isoformat()


@pytest.fixture
def engine():
    """Single-connection SQLite engine shared by the test and the fake service."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        conn.execute(text("""
            CREATE TABLE customers (
                id INTEGER PRIMARY KEY,
                name TEXT,
                email TEXT
            )
        """))
        conn.execute(text("""
            CREATE TABLE orders (
                id INTEGER PRIMARY KEY,
                order_id INTEGER,
                customer_id INTEGER REFERENCES customers(id),
                customer_name TEXT,
                total_amount NUMERIC,
                created_at TEXT,
                updated_at TEXT,
                deleted_at TEXT
            )
        """))
        conn.execute(
            text("INSERT INTO customers (id, name, email) VALUES (:id, :name, :email)"),
            [
                {"id": 1, "name": "Ada Lovelace", "email": "ada@example.com"},
                {"id": 2, "name": "Alan Turing", "email": "alan@example.com"},
            ],
        )
        conn.execute(
            text("""
                INSERT INTO orders (id, order_id, customer_id, customer_name, total_amount, created_at)
                VALUES (:id, :order_id, :customer_id, :customer_name, :total_amount, :created_at)
            """),
            [
                {"id": 1, "order_id": 501, "customer_id": 1, "customer_name": "Ada Lovelace",
                 "total_amount": 10.5, "created_at": now_iso()},
                {"id": 2, "order_id": 502, "customer_id": 2, "customer_name": "Alan Turing",
                 "total_amount": 99.0, "created_at": now_iso()},
            ],
        )
    yield engine
    engine.dispose()


@pytest.fixture
def database(engine):
    return Database(engine=engine)


@pytest.fixture
def catalog_columns():
    """Catalog view of the SQLite tables, as information_schema would report it."""
    def col(table, name, data_type="text"):
        return ColumnMetadata(table=table, name=name, data_type=data_type)

    return [
        col(CUSTOMERS, "id", "integer"),
        col(CUSTOMERS, "name"),
        col(CUSTOMERS, "email"),
        col(ORDERS, "id", "integer"),
        col(ORDERS, "order_id", "integer"),
        col(ORDERS, "customer_id", "integer"),
        col(ORDERS, "customer_name"),
        col(ORDERS, "total_amount", "numeric"),
        col(ORDERS, "created_at", "timestamp with time zone"),
        col(ORDERS, "updated_at", "timestamp with time zone"),
        col(ORDERS, "deleted_at", "timestamp with time zone"),
    ]


def insert_order(engine, body):
    """What the fake service does when it accepts an order."""
    with engine.begin() as conn:
        conn.execute(
            text("""
                INSERT INTO orders (order_id, customer_name, total_amount, created_at)
                VALUES (:order_id, :customer_name, :total_amount, :created_at)
            """),
            {
                "order_id": body.get("orderId"),
                "customer_name": body.get("customerName"),
                "total_amount": body.get("totalAmount"),
                "created_at": now_iso(),
            },
        )


@pytest.fixture
def make_client():
    """Build an httpx client whose requests are answered by `handler`."""
    clients = []

    def factory(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()
