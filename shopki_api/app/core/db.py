"""
SQLite document store and simple migration system.

The storefront keeps its documents (products, orders, bookings, chat
messages) in a managed document database.  The backend mirrors the
collections it needs to reconcile payments in an embedded SQLite file:
each collection is a table, document ids are opaque strings and nested
fields (order items, shipping info, raw provider payloads) are stored as
JSON text.

``get_connection`` opens a connection, ``init_db`` applies numbered
migrations recorded in the ``migrations`` table and runs at startup.
"""

import json
import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import settings


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    Absolute paths in ``settings.database_path`` are used as is, relative
    ones are resolved against the project root.
    """
    db_path = settings.database_path
    if os.path.isabs(db_path):
        return db_path
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / db_path).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection with name-addressable rows."""
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def new_id() -> str:
    """Generate a document id."""
    return uuid.uuid4().hex


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are treated as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_json(value: Any) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def from_json(value: Optional[str], default: Any = None) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: collections used by checkout and payment reconciliation
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            price REAL NOT NULL DEFAULT 0,
            category TEXT,
            vendor_id TEXT,
            image_url TEXT,
            stock INTEGER NOT NULL DEFAULT 0,
            sold INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS orders (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            user_email TEXT,
            user_name TEXT,
            items TEXT NOT NULL,
            shipping_info TEXT,
            payment_method TEXT NOT NULL DEFAULT 'mpesa',
            subtotal REAL NOT NULL DEFAULT 0,
            shipping_fee REAL NOT NULL DEFAULT 0,
            total REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'pending',
            payment_status TEXT NOT NULL DEFAULT 'pending',
            checkout_request_id TEXT,
            transaction_id TEXT,
            payment_id TEXT,
            transaction_data TEXT,
            payment_error TEXT,
            payment_initiated_at TEXT,
            stock_reduced INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            order_id TEXT,
            checkout_request_id TEXT,
            amount INTEGER,
            phone TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_orders_user_id ON orders(user_id);
        CREATE INDEX IF NOT EXISTS idx_orders_checkout_request_id ON orders(checkout_request_id);
        CREATE INDEX IF NOT EXISTS idx_orders_transaction_id ON orders(transaction_id);
        """,
    ),
    # Migration 2: vendor bookings and service chats
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS service_bookings (
            id TEXT PRIMARY KEY,
            service_id TEXT NOT NULL,
            service_name TEXT NOT NULL,
            vendor_id TEXT NOT NULL,
            vendor_name TEXT,
            vendor_email TEXT,
            customer_id TEXT NOT NULL,
            customer_name TEXT NOT NULL,
            customer_email TEXT,
            customer_phone TEXT,
            booking_date TEXT NOT NULL,
            booking_time TEXT,
            notes TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            vendor_notes TEXT,
            original_date TEXT,
            reschedule_date TEXT,
            reschedule_time TEXT,
            reschedule_reason TEXT,
            cancellation_reason TEXT,
            accepted_at TEXT,
            rescheduled_at TEXT,
            cancelled_at TEXT,
            completed_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS service_chats (
            id TEXT PRIMARY KEY,
            chat_room_id TEXT NOT NULL,
            service_id TEXT NOT NULL,
            provider_id TEXT NOT NULL,
            customer_id TEXT NOT NULL,
            sender_id TEXT NOT NULL,
            sender_name TEXT,
            sender_email TEXT,
            sender_type TEXT NOT NULL DEFAULT 'customer',
            receiver_id TEXT,
            message TEXT NOT NULL,
            read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_bookings_vendor_id ON service_bookings(vendor_id);
        CREATE INDEX IF NOT EXISTS idx_bookings_customer_id ON service_bookings(customer_id);
        CREATE INDEX IF NOT EXISTS idx_chats_room ON service_chats(chat_room_id);
        """,
    ),
    # Migration 3: editable email templates and the audit trail
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS email_templates (
            template_type TEXT PRIMARY KEY,
            subject TEXT NOT NULL,
            html TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            actor TEXT,
            action TEXT NOT NULL,
            object_type TEXT,
            object_id TEXT,
            timestamp TEXT NOT NULL,
            details TEXT
        );
        """,
    ),
    # Migration 4: vendor service listings, catalog categories and product reviews
    (
        4,
        """
        ALTER TABLE products ADD COLUMN keywords TEXT;
        ALTER TABLE products ADD COLUMN featured INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE products ADD COLUMN rating REAL NOT NULL DEFAULT 0;
        ALTER TABLE products ADD COLUMN review_count INTEGER NOT NULL DEFAULT 0;

        CREATE TABLE IF NOT EXISTS categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            image_url TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS reviews (
            id TEXT PRIMARY KEY,
            product_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            user_name TEXT,
            rating INTEGER NOT NULL,
            comment TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS services (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            category TEXT NOT NULL,
            price REAL NOT NULL DEFAULT 0,
            duration TEXT NOT NULL DEFAULT 'hourly',
            seller_id TEXT NOT NULL,
            seller_name TEXT,
            images TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            admin_notes TEXT,
            rating REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_reviews_product_id ON reviews(product_id);
        CREATE INDEX IF NOT EXISTS idx_services_seller_id ON services(seller_id);
        """,
    ),
]


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, reads the
    current schema version and applies newer entries of ``MIGRATIONS``
    in order.  Append new migrations with an incremented version.
    """
    with get_cursor() as cursor:
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute("INSERT INTO migrations (version) VALUES (?)", (version,))
                current_version = version
