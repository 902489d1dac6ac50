"""
shop/store.py -- SQLAlchemy-backed persistence layer for the storefront.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in shop/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ShopStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Services and
route handlers never touch SQL directly.

Transactions: every public method is one transaction. checkout() is the only
multi-table write -- payment, order, order items, stock decrement and cart
clearing commit or roll back together.

Security: all queries use bound parameters. Sort columns are resolved from a
whitelist, never interpolated.

Usage:
    store = ShopStore("sqlite:///:memory:")
    cid = store.create_category(Category(category_name="Books"))
    pid = store.create_product(Product(product_name="Dune", category_id=cid, price=9.99))
    products, total = store.page_products(offset=0, limit=10)
    store.close()
"""

from datetime import date
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from shop.models import Address, Cart, CartItem, Category, Order, OrderItem, Payment, Product

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_categories = Table(
    "categories",
    metadata,
    Column("category_id", Integer, primary_key=True, autoincrement=True),
    Column("category_name", String(100), nullable=False, unique=True),
)

_products = Table(
    "products",
    metadata,
    Column("product_id", Integer, primary_key=True, autoincrement=True),
    Column("product_name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("price", Float, nullable=False),
    Column("discount", Float, nullable=False, server_default="0"),
    Column("special_price", Float, nullable=False),
    Column("quantity", Integer, nullable=False, server_default="0"),
    Column("image", String(255), nullable=False, server_default="default.png"),
    Column("category_id", Integer, ForeignKey("categories.category_id"), nullable=False),
    Column("seller_id", Integer),  # users.user_id lives in the auth store
)

_addresses = Table(
    "addresses",
    metadata,
    Column("address_id", Integer, primary_key=True, autoincrement=True),
    Column("street", String(255), nullable=False),
    Column("building_name", String(255), nullable=False),
    Column("city", String(100), nullable=False),
    Column("state", String(100), nullable=False),
    Column("country", String(100), nullable=False),
    Column("pincode", String(20), nullable=False),
    Column("user_id", Integer, nullable=False),
)

_carts = Table(
    "carts",
    metadata,
    Column("cart_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, unique=True),
    Column("total_price", Float, nullable=False, server_default="0"),
)

_cart_items = Table(
    "cart_items",
    metadata,
    Column("cart_item_id", Integer, primary_key=True, autoincrement=True),
    Column("cart_id", Integer, ForeignKey("carts.cart_id"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.product_id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("discount", Float, nullable=False, server_default="0"),
    Column("product_price", Float, nullable=False),
)

_payments = Table(
    "payments",
    metadata,
    Column("payment_id", Integer, primary_key=True, autoincrement=True),
    Column("payment_method", String(50), nullable=False),
    Column("pg_payment_id", String(255)),
    Column("pg_status", String(50)),
    Column("pg_response_message", Text),
    Column("pg_name", String(50)),
)

_orders = Table(
    "orders",
    metadata,
    Column("order_id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False),
    Column("order_date", String(10), nullable=False),  # YYYY-MM-DD
    Column("total_amount", Float, nullable=False),
    Column("order_status", String(50), nullable=False),
    Column("address_id", Integer, nullable=False),
    Column("payment_id", Integer, ForeignKey("payments.payment_id")),
)

_order_items = Table(
    "order_items",
    metadata,
    Column("order_item_id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, ForeignKey("orders.order_id"), nullable=False),
    Column("product_id", Integer, nullable=False),
    Column("product_name", String(255), nullable=False),  # snapshot at order time
    Column("quantity", Integer, nullable=False),
    Column("discount", Float, nullable=False, server_default="0"),
    Column("ordered_product_price", Float, nullable=False),
)

# Public sort keys -> columns. Anything else is rejected.
_SORTABLE: dict[str, dict[str, Column]] = {
    "categories": {
        "category_id": _categories.c.category_id,
        "category_name": _categories.c.category_name,
    },
    "products": {
        "product_id": _products.c.product_id,
        "product_name": _products.c.product_name,
        "price": _products.c.price,
        "special_price": _products.c.special_price,
        "discount": _products.c.discount,
        "quantity": _products.c.quantity,
    },
    "orders": {
        "order_id": _orders.c.order_id,
        "order_date": _orders.c.order_date,
        "total_amount": _orders.c.total_amount,
        "order_status": _orders.c.order_status,
    },
}


def sortable_fields(entity: str) -> list[str]:
    return sorted(_SORTABLE[entity])


def _order_by(entity: str, sort_by: str, descending: bool):
    column = _SORTABLE[entity].get(sort_by)
    if column is None:
        raise ValueError(f"Cannot sort {entity} by {sort_by!r}. Allowed: {', '.join(sortable_fields(entity))}")
    return column.desc() if descending else column.asc()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ShopStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, category: Category) -> int:
        """Insert a category. Raises IntegrityError on a duplicate name."""
        with self.engine.begin() as conn:
            result = conn.execute(_categories.insert().values(category_name=category.category_name))
        return result.inserted_primary_key[0]

    def get_category(self, category_id: int) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.category_id == category_id)).fetchone()
        return _row_to_category(row) if row is not None else None

    def get_category_by_name(self, name: str) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.category_name == name)).fetchone()
        return _row_to_category(row) if row is not None else None

    def page_categories(
        self, offset: int, limit: int, sort_by: str = "category_id", descending: bool = False
    ) -> tuple[list[Category], int]:
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_categories)).scalar() or 0
            rows = conn.execute(
                _categories.select().order_by(_order_by("categories", sort_by, descending)).offset(offset).limit(limit)
            ).fetchall()
        return [_row_to_category(r) for r in rows], total

    def update_category(self, category_id: int, name: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _categories.update().where(_categories.c.category_id == category_id).values(category_name=name)
            )
        return result.rowcount > 0

    def delete_category(self, category_id: int) -> bool:
        """Delete a category together with its products and their cart lines."""
        with self.engine.begin() as conn:
            product_ids = select(_products.c.product_id).where(_products.c.category_id == category_id)
            conn.execute(_cart_items.delete().where(_cart_items.c.product_id.in_(product_ids)))
            conn.execute(_products.delete().where(_products.c.category_id == category_id))
            result = conn.execute(_categories.delete().where(_categories.c.category_id == category_id))
            self._recompute_all_cart_totals(conn)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def create_product(self, product: Product) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _products.insert().values(
                    product_name=product.product_name,
                    description=product.description,
                    price=product.price,
                    discount=product.discount,
                    special_price=product.special_price,
                    quantity=product.quantity,
                    image=product.image,
                    category_id=product.category_id,
                    seller_id=product.seller_id,
                )
            )
        return result.inserted_primary_key[0]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.product_id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def find_product(self, category_id: int, product_name: str) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _products.select().where(
                    (_products.c.category_id == category_id) & (_products.c.product_name == product_name)
                )
            ).fetchone()
        return _row_to_product(row) if row is not None else None

    def page_products(
        self,
        offset: int,
        limit: int,
        sort_by: str = "product_id",
        descending: bool = False,
        category_id: Optional[int] = None,
        keyword: Optional[str] = None,
        seller_id: Optional[int] = None,
    ) -> tuple[list[Product], int]:
        """Return (products, total) with optional category, keyword and seller filters.

        keyword is a case-insensitive substring match on the product name.
        """
        conditions = []
        if category_id is not None:
            conditions.append(_products.c.category_id == category_id)
        if keyword:
            conditions.append(func.lower(_products.c.product_name).contains(keyword.lower(), autoescape=True))
        if seller_id is not None:
            conditions.append(_products.c.seller_id == seller_id)
        query = _products.select()
        count = select(func.count()).select_from(_products)
        for cond in conditions:
            query = query.where(cond)
            count = count.where(cond)
        with self.engine.connect() as conn:
            total = conn.execute(count).scalar() or 0
            rows = conn.execute(
                query.order_by(_order_by("products", sort_by, descending)).offset(offset).limit(limit)
            ).fetchall()
        return [_row_to_product(r) for r in rows], total

    def update_product(self, product_id: int, **fields) -> bool:
        """Update product columns. Cart lines holding the product follow the new price.

        Accepted fields: product_name, description, price, discount,
        special_price, quantity, image, category_id.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_products.update().where(_products.c.product_id == product_id).values(**fields))
            if result.rowcount and ("special_price" in fields or "discount" in fields):
                row = conn.execute(
                    select(_products.c.special_price, _products.c.discount).where(
                        _products.c.product_id == product_id
                    )
                ).fetchone()
                conn.execute(
                    _cart_items.update()
                    .where(_cart_items.c.product_id == product_id)
                    .values(product_price=row.special_price, discount=row.discount)
                )
                self._recompute_cart_totals(conn, self._carts_holding(conn, product_id))
        return result.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        """Delete a product and drop it from every cart holding it."""
        with self.engine.begin() as conn:
            cart_ids = self._carts_holding(conn, product_id)
            conn.execute(_cart_items.delete().where(_cart_items.c.product_id == product_id))
            result = conn.execute(_products.delete().where(_products.c.product_id == product_id))
            self._recompute_cart_totals(conn, cart_ids)
        return result.rowcount > 0

    def count_products(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_products)).scalar() or 0

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def create_address(self, address: Address) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _addresses.insert().values(
                    street=address.street,
                    building_name=address.building_name,
                    city=address.city,
                    state=address.state,
                    country=address.country,
                    pincode=address.pincode,
                    user_id=address.user_id,
                )
            )
        return result.inserted_primary_key[0]

    def get_address(self, address_id: int) -> Optional[Address]:
        with self.engine.connect() as conn:
            row = conn.execute(_addresses.select().where(_addresses.c.address_id == address_id)).fetchone()
        return _row_to_address(row) if row is not None else None

    def list_addresses(self, user_id: Optional[int] = None) -> list[Address]:
        query = _addresses.select().order_by(_addresses.c.address_id)
        if user_id is not None:
            query = query.where(_addresses.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_address(r) for r in rows]

    def update_address(self, address_id: int, **fields) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_addresses.update().where(_addresses.c.address_id == address_id).values(**fields))
        return result.rowcount > 0

    def delete_address(self, address_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_addresses.delete().where(_addresses.c.address_id == address_id))
        return result.rowcount > 0

    def delete_user_data(self, user_id: int) -> None:
        """Drop the cart, cart lines and address book owned by user_id.

        Orders are kept; they carry the buyer's email and an address_id snapshot.
        """
        with self.engine.begin() as conn:
            cart_ids = select(_carts.c.cart_id).where(_carts.c.user_id == user_id)
            conn.execute(_cart_items.delete().where(_cart_items.c.cart_id.in_(cart_ids)))
            conn.execute(_carts.delete().where(_carts.c.user_id == user_id))
            conn.execute(_addresses.delete().where(_addresses.c.user_id == user_id))

    # ------------------------------------------------------------------
    # Carts
    # ------------------------------------------------------------------

    def get_or_create_cart(self, user_id: int) -> Cart:
        with self.engine.begin() as conn:
            row = conn.execute(_carts.select().where(_carts.c.user_id == user_id)).fetchone()
            if row is None:
                conn.execute(_carts.insert().values(user_id=user_id, total_price=0.0))
                row = conn.execute(_carts.select().where(_carts.c.user_id == user_id)).fetchone()
            return self._load_cart(conn, row)

    def get_cart_by_user(self, user_id: int) -> Optional[Cart]:
        with self.engine.connect() as conn:
            row = conn.execute(_carts.select().where(_carts.c.user_id == user_id)).fetchone()
            return self._load_cart(conn, row) if row is not None else None

    def get_cart(self, cart_id: int) -> Optional[Cart]:
        with self.engine.connect() as conn:
            row = conn.execute(_carts.select().where(_carts.c.cart_id == cart_id)).fetchone()
            return self._load_cart(conn, row) if row is not None else None

    def list_carts(self) -> list[Cart]:
        with self.engine.connect() as conn:
            rows = conn.execute(_carts.select().order_by(_carts.c.cart_id)).fetchall()
            return [self._load_cart(conn, r) for r in rows]

    def add_cart_item(self, item: CartItem) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _cart_items.insert().values(
                    cart_id=item.cart_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    discount=item.discount,
                    product_price=item.product_price,
                )
            )
            self._recompute_cart_totals(conn, [item.cart_id])
        return result.inserted_primary_key[0]

    def set_cart_item_quantity(self, cart_id: int, product_id: int, quantity: int) -> bool:
        """Set a line's quantity; quantity 0 removes the line."""
        where = (_cart_items.c.cart_id == cart_id) & (_cart_items.c.product_id == product_id)
        with self.engine.begin() as conn:
            if quantity == 0:
                result = conn.execute(_cart_items.delete().where(where))
            else:
                result = conn.execute(_cart_items.update().where(where).values(quantity=quantity))
            self._recompute_cart_totals(conn, [cart_id])
        return result.rowcount > 0

    def remove_cart_item(self, cart_id: int, product_id: int) -> bool:
        return self.set_cart_item_quantity(cart_id, product_id, 0)

    def _carts_holding(self, conn, product_id: int) -> list[int]:
        return list(
            conn.execute(select(_cart_items.c.cart_id).where(_cart_items.c.product_id == product_id).distinct())
            .scalars()
            .all()
        )

    def _recompute_cart_totals(self, conn, cart_ids) -> None:
        for cart_id in cart_ids:
            total = conn.execute(
                select(func.coalesce(func.sum(_cart_items.c.product_price * _cart_items.c.quantity), 0.0)).where(
                    _cart_items.c.cart_id == cart_id
                )
            ).scalar()
            conn.execute(
                _carts.update().where(_carts.c.cart_id == cart_id).values(total_price=round(float(total), 2))
            )

    def _recompute_all_cart_totals(self, conn) -> None:
        self._recompute_cart_totals(conn, conn.execute(select(_carts.c.cart_id)).scalars().all())

    def _load_cart(self, conn, row) -> Cart:
        items = conn.execute(
            select(_cart_items, _products.c.product_name)
            .join(_products, _products.c.product_id == _cart_items.c.product_id)
            .where(_cart_items.c.cart_id == row.cart_id)
            .order_by(_cart_items.c.cart_item_id)
        ).fetchall()
        return Cart(
            id=row.cart_id,
            user_id=row.user_id,
            total_price=row.total_price,
            items=[_row_to_cart_item(i) for i in items],
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def checkout(self, cart: Cart, email: str, address_id: int, payment: Payment, status: str) -> int:
        """Turn a cart into an order atomically and return the new order ID.

        Decrements stock for every line with a guarded UPDATE
        (quantity >= requested); if any line cannot be satisfied the whole
        transaction rolls back and ValueError names the product.
        """
        with self.engine.begin() as conn:
            payment_id = conn.execute(
                _payments.insert().values(
                    payment_method=payment.payment_method,
                    pg_payment_id=payment.pg_payment_id,
                    pg_status=payment.pg_status,
                    pg_response_message=payment.pg_response_message,
                    pg_name=payment.pg_name,
                )
            ).inserted_primary_key[0]
            order_id = conn.execute(
                _orders.insert().values(
                    email=email,
                    order_date=date.today().isoformat(),
                    total_amount=cart.total_price,
                    order_status=status,
                    address_id=address_id,
                    payment_id=payment_id,
                )
            ).inserted_primary_key[0]
            for item in cart.items:
                conn.execute(
                    _order_items.insert().values(
                        order_id=order_id,
                        product_id=item.product_id,
                        product_name=item.product_name,
                        quantity=item.quantity,
                        discount=item.discount,
                        ordered_product_price=item.product_price,
                    )
                )
                updated = conn.execute(
                    _products.update()
                    .where((_products.c.product_id == item.product_id) & (_products.c.quantity >= item.quantity))
                    .values(quantity=_products.c.quantity - item.quantity)
                )
                if updated.rowcount == 0:
                    raise ValueError(f"Insufficient stock for {item.product_name}")
            conn.execute(_cart_items.delete().where(_cart_items.c.cart_id == cart.id))
            conn.execute(_carts.update().where(_carts.c.cart_id == cart.id).values(total_price=0.0))
        return order_id

    def get_order(self, order_id: int) -> Optional[Order]:
        with self.engine.connect() as conn:
            row = conn.execute(_orders.select().where(_orders.c.order_id == order_id)).fetchone()
            return self._load_orders(conn, [row])[0] if row is not None else None

    def page_orders(
        self,
        offset: int,
        limit: int,
        sort_by: str = "order_id",
        descending: bool = False,
        email: Optional[str] = None,
        seller_id: Optional[int] = None,
    ) -> tuple[list[Order], int]:
        """Return (orders, total). seller_id keeps orders holding at least one of the seller's products."""
        query = _orders.select()
        count = select(func.count()).select_from(_orders)
        if email is not None:
            query = query.where(_orders.c.email == email)
            count = count.where(_orders.c.email == email)
        if seller_id is not None:
            seller_orders = (
                select(_order_items.c.order_id)
                .join(_products, _products.c.product_id == _order_items.c.product_id)
                .where(_products.c.seller_id == seller_id)
            )
            query = query.where(_orders.c.order_id.in_(seller_orders))
            count = count.where(_orders.c.order_id.in_(seller_orders))
        with self.engine.connect() as conn:
            total = conn.execute(count).scalar() or 0
            rows = conn.execute(
                query.order_by(_order_by("orders", sort_by, descending)).offset(offset).limit(limit)
            ).fetchall()
            return self._load_orders(conn, rows), total

    def update_order_status(self, order_id: int, status: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_orders.update().where(_orders.c.order_id == order_id).values(order_status=status))
        return result.rowcount > 0

    def order_totals(self) -> tuple[int, float]:
        """Return (order count, revenue)."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(func.count(_orders.c.order_id), func.coalesce(func.sum(_orders.c.total_amount), 0.0))
            ).fetchone()
        return row[0] or 0, round(float(row[1] or 0.0), 2)

    def _load_orders(self, conn, rows) -> list[Order]:
        if not rows:
            return []
        order_ids = [r.order_id for r in rows]
        payment_ids = [r.payment_id for r in rows if r.payment_id is not None]
        items: dict[int, list[OrderItem]] = {oid: [] for oid in order_ids}
        for item in conn.execute(
            _order_items.select().where(_order_items.c.order_id.in_(order_ids)).order_by(_order_items.c.order_item_id)
        ):
            items[item.order_id].append(_row_to_order_item(item))
        payments = {
            p.payment_id: _row_to_payment(p)
            for p in conn.execute(_payments.select().where(_payments.c.payment_id.in_(payment_ids)))
        }
        return [_row_to_order(r, items[r.order_id], payments.get(r.payment_id)) for r in rows]

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_category(row) -> Category:
    return Category(id=row.category_id, category_name=row.category_name)


def _row_to_product(row) -> Product:
    return Product(
        id=row.product_id,
        product_name=row.product_name,
        description=row.description,
        price=row.price,
        discount=row.discount,
        special_price=row.special_price,
        quantity=row.quantity,
        image=row.image,
        category_id=row.category_id,
        seller_id=row.seller_id,
    )


def _row_to_address(row) -> Address:
    return Address(
        id=row.address_id,
        user_id=row.user_id,
        street=row.street,
        building_name=row.building_name,
        city=row.city,
        state=row.state,
        country=row.country,
        pincode=row.pincode,
    )


def _row_to_cart_item(row) -> CartItem:
    return CartItem(
        id=row.cart_item_id,
        cart_id=row.cart_id,
        product_id=row.product_id,
        product_name=row.product_name,
        quantity=row.quantity,
        discount=row.discount,
        product_price=row.product_price,
    )


def _row_to_payment(row) -> Payment:
    return Payment(
        id=row.payment_id,
        payment_method=row.payment_method,
        pg_payment_id=row.pg_payment_id,
        pg_status=row.pg_status,
        pg_response_message=row.pg_response_message,
        pg_name=row.pg_name,
    )


def _row_to_order_item(row) -> OrderItem:
    return OrderItem(
        id=row.order_item_id,
        order_id=row.order_id,
        product_id=row.product_id,
        product_name=row.product_name,
        quantity=row.quantity,
        discount=row.discount,
        ordered_product_price=row.ordered_product_price,
    )


def _row_to_order(row, items: list[OrderItem], payment: Optional[Payment]) -> Order:
    return Order(
        id=row.order_id,
        email=row.email,
        order_date=row.order_date,
        total_amount=row.total_amount,
        order_status=row.order_status,
        address_id=row.address_id,
        payment=payment,
        items=items,
    )
