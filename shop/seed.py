"""
shop/seed.py -- Sample users, catalogue, carts and addresses for local development.

Loaded by `python main.py seed`. Idempotent per entity: users, categories
and products that already exist (by username / name) are skipped, so running
it twice does not duplicate rows.

All sample users share the password SEED_PASSWORD.
"""

from __future__ import annotations

import logging

from auth.models import AppRole, User
from auth.store import UserStore
from auth.tokens import hash_password
from shop.models import Address, CartItem, Category, Product, special_price
from shop.store import ShopStore

logger = logging.getLogger("storefront.seed")

SEED_PASSWORD = "password123"

_USER, _SELLER, _ADMIN = AppRole.USER.value, AppRole.SELLER.value, AppRole.ADMIN.value

USERS = [
    ("john_doe", "john.doe@example.com", {_USER}),
    ("jane_smith", "jane.smith@example.com", {_USER}),
    ("admin_user", "admin@ecommerce.com", {_ADMIN}),
    ("seller1", "seller1@example.com", {_SELLER, _USER}),
    ("seller2", "seller2@example.com", {_SELLER, _USER}),
    ("mary_jones", "mary.jones@example.com", {_USER}),
    ("bob_wilson", "bob.wilson@example.com", {_USER}),
    ("alice_brown", "alice.brown@example.com", {_USER}),
]

CATEGORIES = [
    "Electronics",
    "Clothing & Fashion",
    "Home & Kitchen",
    "Books & Media",
    "Sports & Outdoors",
    "Beauty & Personal Care",
    "Toys & Games",
    "Food & Grocery",
]

# (name, description, price, discount, quantity, image, category, seller)
PRODUCTS = [
    ("iPhone 14 Pro", "Latest Apple smartphone with advanced camera system and A16 Bionic chip", 999.99, 10, 50, "iphone14pro.jpg", "Electronics", "seller1"),
    ("Samsung Galaxy S23", "Premium Android smartphone with stunning display and powerful performance", 899.99, 15, 30, "galaxys23.jpg", "Electronics", "seller1"),
    ("MacBook Air M2", "Lightweight laptop with M2 chip for incredible performance", 1199.99, 5, 20, "macbookairm2.jpg", "Electronics", "seller1"),
    ("Sony WH-1000XM5", "Industry-leading noise canceling wireless headphones", 399.99, 20, 100, "sonywh1000xm5.jpg", "Electronics", "seller1"),
    ('iPad Pro 12.9"', "Powerful tablet with M2 chip and stunning Liquid Retina display", 1099.99, 8, 25, "ipadpro.jpg", "Electronics", "seller1"),
    ("Levi's 501 Original Jeans", "Classic straight fit jeans in premium denim", 79.99, 25, 200, "levis501.jpg", "Clothing & Fashion", "seller2"),
    ("Nike Air Max 270", "Comfortable running shoes with Max Air unit", 150.00, 30, 150, "nikeairmax270.jpg", "Clothing & Fashion", "seller2"),
    ("Adidas Hoodie", "Comfortable cotton blend hoodie with iconic 3-stripes", 65.00, 20, 100, "adidashoodie.jpg", "Clothing & Fashion", "seller2"),
    ("Ray-Ban Aviator Sunglasses", "Classic aviator sunglasses with UV protection", 168.00, 15, 50, "raybanaviatior.jpg", "Clothing & Fashion", "seller2"),
    ("The North Face Jacket", "Waterproof and breathable outdoor jacket", 299.99, 10, 40, "northfacejacket.jpg", "Clothing & Fashion", "seller2"),
    ("Instant Pot Duo 7-in-1", "Multi-use pressure cooker for fast and easy meals", 89.99, 35, 80, "instantpot.jpg", "Home & Kitchen", "seller1"),
    ("Dyson V15 Detect", "Powerful cordless vacuum with laser dust detection", 749.99, 10, 15, "dysonv15.jpg", "Home & Kitchen", "seller1"),
    ("Nespresso Vertuo Coffee Maker", "Premium coffee and espresso machine", 189.99, 25, 60, "nespresso.jpg", "Home & Kitchen", "seller1"),
    ("All-Clad Cookware Set", "Professional 10-piece stainless steel cookware set", 699.99, 20, 20, "allcladset.jpg", "Home & Kitchen", "seller1"),
    ("KitchenAid Stand Mixer", "Professional 5-quart stand mixer in various colors", 379.99, 15, 35, "kitchenaidmixer.jpg", "Home & Kitchen", "seller1"),
    ("Atomic Habits", "James Clear - Transform your life with tiny changes", 27.99, 40, 500, "atomichabits.jpg", "Books & Media", "seller2"),
    ("The Psychology of Money", "Morgan Housel - Timeless lessons on wealth and happiness", 24.99, 35, 300, "psychologyofmoney.jpg", "Books & Media", "seller2"),
    ("Educated: A Memoir", "Tara Westover - Inspiring story of education and family", 28.99, 30, 200, "educated.jpg", "Books & Media", "seller2"),
    ("Project Hail Mary", "Andy Weir - Science fiction adventure from the author of The Martian", 29.99, 25, 250, "projecthailmary.jpg", "Books & Media", "seller2"),
    ("The Midnight Library", "Matt Haig - A novel about all the lives you could have lived", 26.99, 20, 350, "midnightlibrary.jpg", "Books & Media", "seller2"),
    ("Yeti Tumbler 30oz", "Insulated stainless steel tumbler keeps drinks cold or hot", 35.00, 15, 200, "yetitumbler.jpg", "Sports & Outdoors", "seller1"),
    ("Fitbit Charge 5", "Advanced fitness and health tracker", 149.99, 20, 100, "fitbitcharge5.jpg", "Sports & Outdoors", "seller1"),
    ("Coleman Camping Tent", "6-person dome tent for family camping", 199.99, 30, 40, "colemantent.jpg", "Sports & Outdoors", "seller1"),
    ("Hydro Flask Water Bottle", "32oz insulated water bottle in multiple colors", 44.95, 10, 150, "hydroflask.jpg", "Sports & Outdoors", "seller1"),
    ("Yoga Mat Premium", "Extra thick non-slip exercise mat", 79.99, 40, 100, "yogamat.jpg", "Sports & Outdoors", "seller1"),
]  # fmt: skip

# (username, street, building, city, state, country, pincode)
ADDRESSES = [
    ("john_doe", "123 Main Street", "Sunshine Apartments", "New York", "NY", "USA", "10001"),
    ("john_doe", "456 Oak Avenue", "Green Valley Complex", "Los Angeles", "CA", "USA", "90001"),
    ("jane_smith", "789 Elm Road", "Blue Sky Tower", "Chicago", "IL", "USA", "60601"),
    ("admin_user", "321 Pine Street", "Admin Building", "San Francisco", "CA", "USA", "94101"),
    ("seller1", "654 Market Street", "Commerce Center", "Seattle", "WA", "USA", "98101"),
    ("seller2", "987 Fifth Avenue", "Plaza Residences", "Miami", "FL", "USA", "33101"),
    ("mary_jones", "147 Broadway", "City Heights", "Boston", "MA", "USA", "02101"),
    ("bob_wilson", "258 Washington St", "Liberty Tower", "Denver", "CO", "USA", "80201"),
    ("alice_brown", "369 Lake Drive", "Waterfront Condos", "Austin", "TX", "USA", "78701"),
]

# username -> [(product name, quantity)]
CART_LINES = {
    "john_doe": [("Sony WH-1000XM5", 1), ("Atomic Habits", 2)],
    "jane_smith": [("Levi's 501 Original Jeans", 1), ("Instant Pot Duo 7-in-1", 1)],
    "mary_jones": [("Adidas Hoodie", 1)],
}


def seed(user_store: UserStore, shop: ShopStore) -> dict[str, int]:
    """Load the sample data set. Returns counts of rows created per entity."""
    created = {"users": 0, "categories": 0, "products": 0, "addresses": 0, "cart_items": 0}
    hashed = hash_password(SEED_PASSWORD)

    user_ids: dict[str, int] = {}
    for username, email, roles in USERS:
        existing = user_store.get_by_username(username)
        if existing is not None:
            user_ids[username] = existing.id
            continue
        user_ids[username] = user_store.create_user(
            User(username=username, email=email, hashed_password=hashed, roles=set(roles))
        )
        created["users"] += 1
        # Addresses only for users created in this run.
        for owner, street, building, city, state, country, pincode in ADDRESSES:
            if owner != username:
                continue
            shop.create_address(
                Address(
                    user_id=user_ids[username],
                    street=street,
                    building_name=building,
                    city=city,
                    state=state,
                    country=country,
                    pincode=pincode,
                )
            )
            created["addresses"] += 1

    category_ids: dict[str, int] = {}
    for name in CATEGORIES:
        existing = shop.get_category_by_name(name)
        if existing is not None:
            category_ids[name] = existing.id
            continue
        category_ids[name] = shop.create_category(Category(category_name=name))
        created["categories"] += 1

    product_ids: dict[str, int] = {}
    for name, description, price, discount, quantity, image, category, seller in PRODUCTS:
        existing = shop.find_product(category_ids[category], name)
        if existing is not None:
            product_ids[name] = existing.id
            continue
        product_ids[name] = shop.create_product(
            Product(
                product_name=name,
                description=description,
                price=price,
                discount=discount,
                special_price=special_price(price, discount),
                quantity=quantity,
                image=image,
                category_id=category_ids[category],
                seller_id=user_ids[seller],
            )
        )
        created["products"] += 1

    for username, lines in CART_LINES.items():
        cart = shop.get_or_create_cart(user_ids[username])
        held = {i.product_id for i in cart.items}
        for product_name, quantity in lines:
            product = shop.get_product(product_ids[product_name])
            if product.id in held:
                continue
            shop.add_cart_item(
                CartItem(
                    cart_id=cart.id,
                    product_id=product.id,
                    quantity=quantity,
                    discount=product.discount,
                    product_price=product.special_price,
                )
            )
            created["cart_items"] += 1

    logger.info("Seed complete: %s", created)
    return created
