from __future__ import annotations

import sqlite3
import hashlib
import hmac
import secrets
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from shoptrack.domain.errors import InsufficientStockError, NotFoundError
from shoptrack.domain.models import Product, Sale, SupportTicket, Tenant
from shoptrack.repositories.change_feed import ChangeFeed, ErrorListener, Listener, Subscription

PRODUCTS = "products"
SALES = "sales"

PRODUCT_COLUMNS = "id, tenant_id, name, sku, category, quantity, min_stock, price, cost_price, created_at, updated_at"
SALE_COLUMNS = "id, tenant_id, product_id, product_name, quantity, unit_price, total_amount, date"
TENANT_COLUMNS = "id, email, display_name, business_name, created_at"
TICKET_COLUMNS = (
    "id, tenant_id, user_email, user_display_name, subject, message, status, created_at, updated_at"
)

UPDATABLE_PRODUCT_FIELDS = ("name", "sku", "category", "quantity", "min_stock", "price", "cost_price")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(str(value))


def _product(r) -> Product:
    return Product(
        id=int(r[0]),
        tenant_id=int(r[1]),
        name=str(r[2]),
        sku=str(r[3]),
        category=str(r[4]),
        quantity=int(r[5]),
        min_stock=int(r[6]),
        price=float(r[7]),
        cost_price=float(r[8]),
        created_at=_ts(r[9]),
        updated_at=_ts(r[10]),
    )


def _sale(r) -> Sale:
    return Sale(
        id=int(r[0]),
        tenant_id=int(r[1]),
        product_id=int(r[2]),
        product_name=str(r[3]),
        quantity=int(r[4]),
        unit_price=float(r[5]),
        total_amount=float(r[6]),
        date=_ts(r[7]),
    )


def _tenant(r) -> Tenant:
    return Tenant(
        id=int(r[0]),
        email=str(r[1]),
        display_name=str(r[2]),
        business_name=(str(r[3]) if r[3] is not None else None),
        created_at=_ts(r[4]),
    )


def _ticket(r) -> SupportTicket:
    return SupportTicket(
        id=int(r[0]),
        tenant_id=int(r[1]),
        user_email=str(r[2]),
        user_display_name=str(r[3]),
        subject=str(r[4]),
        message=str(r[5]),
        status=str(r[6]),
        created_at=_ts(r[7]),
        updated_at=_ts(r[8]),
    )


class SqliteRepository:
    def __init__(self, db_path: Path | str, feed: ChangeFeed | None = None):
        self.db_path = str(db_path)
        self.feed = feed or ChangeFeed()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def _schema_version(self) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT 1 FROM sqlite_master WHERE type='table' AND name='schema_migrations'")
        if not cur.fetchone():
            conn.close()
            return 0
        cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        version = int(cur.fetchone()[0])
        conn.close()
        return version

    def run_migrations(self) -> None:
        migrations = [
            (1, self._migration_v1_base),
            (2, self._migration_v2_tenant_indexes),
        ]
        current_version = self._schema_version()
        pending = [(v, m) for v, m in migrations if v > current_version]
        if not pending:
            return

        backup_path = self._create_pre_migration_backup()
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            for version, migration in pending:
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()
        if backup_path is not None:
            backup_path.unlink(missing_ok=True)

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS tenants (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE NOT NULL,
            password TEXT NOT NULL,
            display_name TEXT NOT NULL,
            business_name TEXT,
            created_at TEXT NOT NULL,
            failed_attempts INTEGER NOT NULL DEFAULT 0,
            locked_until TEXT
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            sku TEXT NOT NULL,
            category TEXT NOT NULL,
            quantity INTEGER NOT NULL DEFAULT 0 CHECK(quantity >= 0),
            min_stock INTEGER NOT NULL DEFAULT 0 CHECK(min_stock >= 0),
            price REAL NOT NULL CHECK(price >= 0),
            cost_price REAL NOT NULL CHECK(cost_price >= 0),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(tenant_id) REFERENCES tenants(id)
        )
        """
        )

        # product_id is a plain reference: sales outlive the product they were recorded against
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            product_name TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            unit_price REAL NOT NULL CHECK(unit_price >= 0),
            total_amount REAL NOT NULL CHECK(total_amount >= 0),
            date TEXT NOT NULL,
            FOREIGN KEY(tenant_id) REFERENCES tenants(id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS support_tickets (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id INTEGER NOT NULL,
            user_email TEXT NOT NULL,
            user_display_name TEXT NOT NULL,
            subject TEXT NOT NULL,
            message TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending','in-progress','resolved')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(tenant_id) REFERENCES tenants(id)
        )
        """
        )

    def _migration_v2_tenant_indexes(self, cur: sqlite3.Cursor) -> None:
        cur.execute("CREATE INDEX IF NOT EXISTS ix_products_tenant ON products(tenant_id, created_at)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sales_tenant ON sales(tenant_id, date)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_tickets_created ON support_tickets(created_at)")

    # ---------- Tenants ----------
    def create_tenant(self, email: str, password: str, display_name: str, business_name: Optional[str]) -> Tenant:
        conn = self._conn()
        cur = conn.cursor()
        created = now_iso()
        try:
            cur.execute(
                """
                INSERT INTO tenants (email, password, display_name, business_name, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (email, self._hash_secret(password), display_name, business_name, created),
            )
            tid = int(cur.lastrowid)
            conn.commit()
        finally:
            conn.close()
        return Tenant(id=tid, email=email, display_name=display_name, business_name=business_name,
                      created_at=_ts(created))

    def get_tenant(self, tenant_id: int) -> Optional[Tenant]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {TENANT_COLUMNS} FROM tenants WHERE id=?", (int(tenant_id),))
        r = cur.fetchone()
        conn.close()
        return _tenant(r) if r else None

    def get_tenant_by_email(self, email: str) -> Optional[Tenant]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {TENANT_COLUMNS} FROM tenants WHERE email=?", (email,))
        r = cur.fetchone()
        conn.close()
        return _tenant(r) if r else None

    def list_tenants(self) -> list[Tenant]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {TENANT_COLUMNS} FROM tenants ORDER BY created_at DESC, id DESC")
        rows = cur.fetchall()
        conn.close()
        return [_tenant(r) for r in rows]

    def tenant_stats(self, tenant_id: int) -> tuple[int, int, float]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT COUNT(*) FROM products WHERE tenant_id=?", (int(tenant_id),))
        products_count = int(cur.fetchone()[0])
        cur.execute(
            "SELECT COUNT(*), COALESCE(SUM(total_amount), 0) FROM sales WHERE tenant_id=?",
            (int(tenant_id),),
        )
        sales_count, revenue = cur.fetchone()
        conn.close()
        return products_count, int(sales_count), float(revenue)

    def get_tenant_security_state(self, email: str) -> tuple[int, Optional[str]] | None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT failed_attempts, locked_until FROM tenants WHERE email=?", (email,))
        row = cur.fetchone()
        conn.close()
        if not row:
            return None
        return int(row[0]), (str(row[1]) if row[1] is not None else None)

    def record_login_failure(self, email: str, max_attempts: int, lockout_seconds: int) -> tuple[int, Optional[str]]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT id, failed_attempts FROM tenants WHERE email=?", (email,))
        row = cur.fetchone()
        if not row:
            conn.close()
            return 0, None

        attempts = int(row[1]) + 1
        locked_until = None
        if attempts >= int(max_attempts):
            attempts = 0
            cur.execute(
                "UPDATE tenants SET failed_attempts=?, locked_until=datetime('now', ?) WHERE id=?",
                (attempts, f"+{int(lockout_seconds)} seconds", int(row[0])),
            )
            cur.execute("SELECT locked_until FROM tenants WHERE id=?", (int(row[0]),))
            locked_until = str(cur.fetchone()[0])
        else:
            cur.execute("UPDATE tenants SET failed_attempts=? WHERE id=?", (attempts, int(row[0])))
        conn.commit()
        conn.close()
        return attempts, locked_until

    def clear_login_guard(self, tenant_id: int) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE tenants SET failed_attempts=0, locked_until=NULL WHERE id=?", (int(tenant_id),))
        conn.commit()
        conn.close()

    def authenticate_tenant(self, email: str, password: str) -> Optional[Tenant]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {TENANT_COLUMNS}, password FROM tenants WHERE email=?", (email,))
        row = cur.fetchone()
        conn.close()
        if row and self._verify_secret(str(row[5]), password):
            return _tenant(row)
        return None

    # ---------- Products ----------
    def add_product(
        self,
        tenant_id: int,
        name: str,
        sku: str,
        category: str,
        quantity: int,
        min_stock: int,
        price: float,
        cost_price: float,
    ) -> Product:
        conn = self._conn()
        cur = conn.cursor()
        stamp = now_iso()
        cur.execute(
            """
            INSERT INTO products (tenant_id, name, sku, category, quantity, min_stock, price, cost_price,
                                  created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (int(tenant_id), name, sku, category, int(quantity), int(min_stock), float(price),
             float(cost_price), stamp, stamp),
        )
        pid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        self.feed.publish(PRODUCTS, tenant_id)
        return Product(
            id=pid,
            tenant_id=int(tenant_id),
            name=name,
            sku=sku,
            category=category,
            quantity=int(quantity),
            min_stock=int(min_stock),
            price=float(price),
            cost_price=float(cost_price),
            created_at=_ts(stamp),
            updated_at=_ts(stamp),
        )

    def update_product(self, tenant_id: int, product_id: int, changes: dict[str, Any]) -> bool:
        fields = [f for f in UPDATABLE_PRODUCT_FIELDS if f in changes]
        assignments = ", ".join(f"{f}=?" for f in fields + ["updated_at"])
        params = [changes[f] for f in fields] + [now_iso(), int(product_id), int(tenant_id)]

        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"UPDATE products SET {assignments} WHERE id=? AND tenant_id=?", params)
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        if changed:
            self.feed.publish(PRODUCTS, tenant_id)
        return bool(changed)

    def delete_product(self, tenant_id: int, product_id: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM products WHERE id=? AND tenant_id=?", (int(product_id), int(tenant_id)))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        if changed:
            self.feed.publish(PRODUCTS, tenant_id)
        return bool(changed)

    def get_product(self, tenant_id: int, product_id: int) -> Optional[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id=? AND tenant_id=?",
            (int(product_id), int(tenant_id)),
        )
        r = cur.fetchone()
        conn.close()
        return _product(r) if r else None

    def list_products(self, tenant_id: int) -> list[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products
            WHERE tenant_id=?
            ORDER BY created_at DESC, id DESC
        """,
            (int(tenant_id),),
        )
        rows = cur.fetchall()
        conn.close()
        return [_product(r) for r in rows]

    def subscribe_products(self, tenant_id: int, listener: Listener,
                           on_error: ErrorListener | None = None) -> Subscription:
        return self.feed.subscribe(PRODUCTS, tenant_id, lambda: self.list_products(tenant_id), listener, on_error)

    # ---------- Sales ----------
    def record_sale(self, tenant_id: int, product_id: int, quantity: int, datetime_iso: str) -> Sale:
        """Insert the sale and decrement stock in one transaction.

        The decrement only applies while ``quantity >= requested``; otherwise
        nothing is written and ``InsufficientStockError`` is raised.
        """
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            cur.execute(
                "SELECT name, sku, price, quantity FROM products WHERE id=? AND tenant_id=?",
                (int(product_id), int(tenant_id)),
            )
            row = cur.fetchone()
            if not row:
                raise NotFoundError("Product not found.")
            name, sku, unit_price, available = str(row[0]), str(row[1]), float(row[2]), int(row[3])

            cur.execute(
                """
                UPDATE products
                SET quantity = quantity - ?, updated_at = ?
                WHERE id = ? AND tenant_id = ? AND quantity >= ?
                """,
                (int(quantity), datetime_iso, int(product_id), int(tenant_id), int(quantity)),
            )
            if cur.rowcount == 0:
                raise InsufficientStockError(f"Not enough stock for {sku}. Available: {available}")

            total_amount = unit_price * int(quantity)
            cur.execute(
                """
                INSERT INTO sales (tenant_id, product_id, product_name, quantity, unit_price, total_amount, date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (int(tenant_id), int(product_id), name, int(quantity), unit_price, total_amount, datetime_iso),
            )
            sale_id = int(cur.lastrowid)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        self.feed.publish(SALES, tenant_id)
        self.feed.publish(PRODUCTS, tenant_id)
        return Sale(
            id=sale_id,
            tenant_id=int(tenant_id),
            product_id=int(product_id),
            product_name=name,
            quantity=int(quantity),
            unit_price=unit_price,
            total_amount=total_amount,
            date=_ts(datetime_iso),
        )

    def list_sales(self, tenant_id: int) -> list[Sale]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {SALE_COLUMNS}
            FROM sales
            WHERE tenant_id=?
            ORDER BY date DESC, id DESC
        """,
            (int(tenant_id),),
        )
        rows = cur.fetchall()
        conn.close()
        return [_sale(r) for r in rows]

    def subscribe_sales(self, tenant_id: int, listener: Listener,
                        on_error: ErrorListener | None = None) -> Subscription:
        return self.feed.subscribe(SALES, tenant_id, lambda: self.list_sales(tenant_id), listener, on_error)

    # ---------- Support tickets ----------
    def create_ticket(self, tenant_id: int, user_email: str, user_display_name: str, subject: str,
                      message: str) -> SupportTicket:
        conn = self._conn()
        cur = conn.cursor()
        stamp = now_iso()
        cur.execute(
            """
            INSERT INTO support_tickets (tenant_id, user_email, user_display_name, subject, message, status,
                                         created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, 'pending', ?, ?)
            """,
            (int(tenant_id), user_email, user_display_name, subject, message, stamp, stamp),
        )
        tid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return SupportTicket(
            id=tid,
            tenant_id=int(tenant_id),
            user_email=user_email,
            user_display_name=user_display_name,
            subject=subject,
            message=message,
            status="pending",
            created_at=_ts(stamp),
            updated_at=_ts(stamp),
        )

    def get_ticket(self, ticket_id: int) -> Optional[SupportTicket]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {TICKET_COLUMNS} FROM support_tickets WHERE id=?", (int(ticket_id),))
        r = cur.fetchone()
        conn.close()
        return _ticket(r) if r else None

    def list_tickets(self) -> list[SupportTicket]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {TICKET_COLUMNS} FROM support_tickets ORDER BY created_at DESC, id DESC")
        rows = cur.fetchall()
        conn.close()
        return [_ticket(r) for r in rows]

    def update_ticket_status(self, ticket_id: int, status: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "UPDATE support_tickets SET status=?, updated_at=? WHERE id=?",
            (status, now_iso(), int(ticket_id)),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    @staticmethod
    def _hash_secret(secret: str, *, rounds: int = 200_000, salt: str | None = None) -> str:
        salt = salt or secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), bytes.fromhex(salt), rounds).hex()
        return f"pbkdf2_sha256${rounds}${salt}${digest}"

    @staticmethod
    def _verify_secret(stored: str, provided: str) -> bool:
        if not stored.startswith("pbkdf2_sha256$"):
            return False
        try:
            _algo, rounds_s, salt, digest = stored.split("$", 3)
            candidate = hashlib.pbkdf2_hmac(
                "sha256",
                provided.encode("utf-8"),
                bytes.fromhex(salt),
                int(rounds_s),
            ).hex()
        except ValueError:
            return False
        return hmac.compare_digest(candidate, digest)
