"""
Database seeding script for local development.

Creates an ADMIN user, a CUSTOMER user and a small product catalog, then
prints bearer tokens for both users (authentication is handled upstream;
these tokens stand in for it locally).
Run this script after the database is set up but before first use.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from backend.app.core.jwt import create_access_token
from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.enums import UserRole
from backend.app.models.product import Product
from backend.app.models.product_enums import StockStatus
from backend.app.models.user import User

SEED_USERS = [
    {"email": "admin@orders.local", "full_name": "Store Admin", "role": UserRole.ADMIN},
    {"email": "customer@orders.local", "full_name": "Demo Customer", "role": UserRole.CUSTOMER},
]

SEED_PRODUCTS = [
    {"name": "Wireless Mouse", "sku": "MOUSE-01", "price": Decimal("25.00"), "stock_quantity": 50},
    {"name": "USB-C Cable", "sku": "CABLE-01", "price": Decimal("8.50"), "stock_quantity": 200},
    {"name": "Desk Lamp", "sku": "LAMP-01", "price": Decimal("40.00"), "stock_quantity": 5},
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        users = []
        for data in SEED_USERS:
            result = await db.execute(select(User).where(User.email == data["email"]))
            user = result.scalar_one_or_none()
            if user:
                print(f"ℹ️  {data['role'].value} user {data['email']} already exists, skipping")
            else:
                user = User(is_active=True, **data)
                db.add(user)
                print(f"✅ Created {data['role'].value} user ({data['email']})")
            users.append(user)

        for data in SEED_PRODUCTS:
            result = await db.execute(select(Product).where(Product.sku == data["sku"]))
            if result.scalar_one_or_none():
                continue
            db.add(Product(stock_status=StockStatus.IN_STOCK, **data))
            print(f"✅ Created product {data['name']} (stock: {data['stock_quantity']})")

        await db.commit()

        print("\n🔑 Bearer tokens:")
        for user in users:
            await db.refresh(user)
            token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
            print(f"   {user.role.value}: {token}")

        print("\n🎉 Seeding completed!")


if __name__ == "__main__":
    asyncio.run(seed())
