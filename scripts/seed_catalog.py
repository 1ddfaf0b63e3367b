#!/usr/bin/env python3
"""Seed demo catalog script.

Creates the catalog tables and seeds a small demo catalog: a category
hierarchy, colour and size attributes, tags, simple products (one of
them on promotion) and combination products with variant fragments.

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --no-clear
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete

from shopcatalog.catalog.models import (
    Attribute,
    AttributeOption,
    Category,
    Product,
    ProductVariant,
    Tag,
)
from shopcatalog.catalog.repository import (
    AttributeRepository,
    CategoryRepository,
    ProductRepository,
    TagRepository,
)
from shopcatalog.infrastructure.database import Base, async_session_factory, engine
from shopcatalog.infrastructure.logging_config import configure_logging


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def clear_catalog() -> None:
    """Remove every catalog row."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


def _attribute(title: str, options: list[str]) -> Attribute:
    return Attribute(
        title={"en": title},
        name={"en": title},
        options=[AttributeOption(name={"en": option}) for option in options],
    )


async def seed_catalog() -> dict[str, int]:
    """Seed the demo catalog.

    Returns:
        Number of rows created per kind.
    """
    now = datetime.now(timezone.utc)

    async with async_session_factory() as session:
        categories = CategoryRepository(session)
        tags = TagRepository(session)
        attributes = AttributeRepository(session)
        products = ProductRepository(session)

        clothing = await categories.save(
            Category(name={"en": "Clothing", "fr": "Vêtements"}, slug="clothing", is_top_category=True)
        )
        shoes = await categories.save(
            Category(
                name={"en": "Shoes", "fr": "Chaussures"},
                slug="shoes",
                parent_id=clothing.id,
                parent_name=clothing.name,
            )
        )
        running = await categories.save(
            Category(
                name={"en": "Running", "fr": "Course"},
                slug="running",
                parent_id=shoes.id,
                parent_name=shoes.name,
            )
        )
        shirts = await categories.save(
            Category(
                name={"en": "Shirts", "fr": "Chemises"},
                slug="shirts",
                parent_id=clothing.id,
                parent_name=clothing.name,
            )
        )
        home = await categories.save(
            Category(name={"en": "Home", "fr": "Maison"}, slug="home", is_top_category=True)
        )

        sale = await tags.save(Tag(name={"en": "Sale", "fr": "Soldes"}, slug="sale"))
        outdoor = await tags.save(Tag(name={"en": "Outdoor", "fr": "Plein air"}, slug="outdoor"))

        color = await attributes.save(_attribute("Color", ["Red", "Blue", "Black"]))
        size = await attributes.save(_attribute("Size", ["S", "M", "L"]))
        red, blue, black = (option.id for option in color.options)
        small, medium, large = (option.id for option in size.options)

        seeded = [
            await products.save(
                Product(
                    title={"en": "Running Shoe", "fr": "Chaussure de course"},
                    brand="Stride",
                    original_price=Decimal("100.00"),
                    price=Decimal("80.00"),
                    discount=Decimal("20.00"),
                    promotional=1,
                    date_to_promo=now + timedelta(days=14),
                    current_stock=25,
                    sales_count=140,
                    rating=Decimal("4.60"),
                    category_id=running.id,
                ),
                category_ids=[running.id, shoes.id],
                tag_ids=[sale.id, outdoor.id],
            ),
            await products.save(
                Product(
                    title={"en": "Trail Shoe", "fr": "Chaussure de trail"},
                    brand="stride ",
                    original_price=Decimal("120.00"),
                    price=Decimal("120.00"),
                    current_stock=0,
                    sales_count=35,
                    rating=Decimal("4.10"),
                    category_id=running.id,
                ),
                category_ids=[running.id],
                tag_ids=[outdoor.id],
            ),
            await products.save(
                Product(
                    title={"en": "Linen Shirt", "fr": "Chemise en lin"},
                    brand="Atelier",
                    is_combination=True,
                    current_stock=30,
                    sales_count=60,
                    rating=Decimal("4.30"),
                    category_id=shirts.id,
                    variants=[
                        ProductVariant(
                            position=0,
                            fragment={color.id: blue, size.id: medium, "price": "45.00", "quantity": 10},
                        ),
                        ProductVariant(
                            position=1,
                            fragment={color.id: red, size.id: small, "price": "42.00", "quantity": 8},
                        ),
                        ProductVariant(
                            position=2,
                            fragment={color.id: blue, size.id: large, "price": "47.00", "quantity": 12},
                        ),
                    ],
                ),
                category_ids=[shirts.id],
            ),
            await products.save(
                Product(
                    title={"en": "Ceramic Vase", "fr": "Vase en céramique"},
                    brand="Maison Blanche",
                    is_combination=True,
                    current_stock=5,
                    status="hide",
                    category_id=home.id,
                    variants=[
                        ProductVariant(
                            position=0,
                            fragment={color.id: black, "price": "0", "original_price": "30.00"},
                        ),
                    ],
                ),
                category_ids=[home.id],
            ),
        ]

        await session.commit()

    return {
        "categories": 5,
        "tags": 2,
        "attributes": 2,
        "products": len(seeded),
    }


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed the demo product catalog")
    parser.add_argument(
        "--no-clear",
        action="store_true",
        help="Don't clear the existing catalog before seeding",
    )
    args = parser.parse_args()

    configure_logging()

    print("=" * 60)
    print("Shop Catalog Seeder")
    print("=" * 60)

    print("Creating database tables...")
    await create_tables()
    if not args.no_clear:
        print("Clearing existing catalog...")
        await clear_catalog()

    result = await seed_catalog()
    for kind, count in result.items():
        print(f"  ✓ {kind.capitalize()}: {count}")

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
