"""SQLAlchemy models for the product catalog.

Defines products with their variant fragments, hierarchical categories,
tags and the attributes whose options variant fragments reference.
Identifiers are 24-character hex strings; variant fragments use attribute
identifiers of that same shape as their keys.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopcatalog.infrastructure.database import Base


def new_object_id() -> str:
    """Generate a 24-character hex identifier."""
    return uuid4().hex[:24]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _number(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column(
        "product_id",
        String(24),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "category_id",
        String(24),
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)

product_tags = Table(
    "product_tags",
    Base.metadata,
    Column(
        "product_id",
        String(24),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        String(24),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class Category(Base):
    """Catalog category.

    Categories form a forest through ``parent_id``. The column is a plain
    string rather than a foreign key: a parent may have been deleted, in
    which case the category is treated as an orphaned root.

    Attributes:
        id: Category identifier.
        name: Localized name (locale -> text).
        description: Localized description.
        slug: URL slug.
        parent_id: Parent category id, unset for roots.
        parent_name: Denormalized localized name of the parent.
        icon: Icon URL.
        image: Image URL.
        is_top_category: Shown among featured categories.
        show_products_on_homepage: Homepage display flag.
        status: "show" or "hide".
        position: Manual ordering hint.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    name: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    description: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    slug: Mapped[str | None] = mapped_column(String(200), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(24), nullable=True, index=True)
    parent_name: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    image: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_top_category: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_products_on_homepage: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="show", index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, parent_id={self.parent_id})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "slug": self.slug,
            "parent_id": self.parent_id,
            "parent_name": self.parent_name,
            "icon": self.icon,
            "image": self.image,
            "is_top_category": self.is_top_category,
            "show_products_on_homepage": self.show_products_on_homepage,
            "status": self.status,
            "position": self.position,
        }


class Tag(Base):
    """Product tag."""

    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    name: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="show")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Tag(id={self.id}, slug={self.slug})>"


class Attribute(Base):
    """Variant axis such as colour or size.

    The attribute id is the key variant fragments use to select one of
    the attribute's options.
    """

    __tablename__ = "attributes"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    title: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    name: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    option: Mapped[str] = mapped_column(String(20), nullable=False, default="Dropdown")
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="show")

    options: Mapped[list["AttributeOption"]] = relationship(
        "AttributeOption",
        back_populates="attribute",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class AttributeOption(Base):
    """One selectable value of an attribute (e.g. "Red")."""

    __tablename__ = "attribute_options"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    attribute_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("attributes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="show")

    attribute: Mapped["Attribute"] = relationship("Attribute", back_populates="options")


class Product(Base):
    """Product entity in the catalog.

    A product is either simple, priced by the ``original_price`` /
    ``price`` / ``discount`` triple, or a combination product priced per
    variant fragment.

    Attributes:
        id: Product identifier.
        title: Localized title.
        description: Localized description.
        short_description: Localized short description.
        name: Raw name, defaults to the English or French title.
        slug: URL slug.
        sku: Stock Keeping Unit.
        brand: Free-text brand.
        vendor: Vendor identifier.
        user_id: Owner identifier.
        original_price: Base price of a simple product.
        price: Promotional price of a simple product.
        discount: Discount amount of a simple product.
        is_combination: Whether pricing comes from variants.
        current_stock: Units in stock.
        sales_count: Units sold.
        featured: Numeric featured flag.
        promotional: Numeric promotional flag.
        date_to_promo: End of the promotion.
        rating: Average rating.
        num_reviews: Number of reviews.
        status: "show" or "hide".
        category_id: Primary category.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    title: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    description: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    short_description: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    vendor: Mapped[str | None] = mapped_column(String(24), nullable=True, index=True)
    user_id: Mapped[str | None] = mapped_column(String(24), nullable=True, index=True)
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_combination: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    featured: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    promotional: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    date_to_promo: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=Decimal("0"))
    num_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="show", index=True)
    category_id: Mapped[str | None] = mapped_column(String(24), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    variants: Mapped[list["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.position",
        lazy="selectin",
    )
    categories: Mapped[list["Category"]] = relationship(
        "Category",
        secondary=product_categories,
        lazy="selectin",
    )
    tags: Mapped[list["Tag"]] = relationship(
        "Tag",
        secondary=product_tags,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku})>"

    @property
    def fragments(self) -> list[dict[str, Any]]:
        """Variant fragments in declaration order."""
        return [dict(v.fragment) for v in self.variants]

    def pricing_document(self) -> dict[str, Any]:
        """Fields the price resolver reads.

        Returns:
            Product shape restricted to pricing data.
        """
        return {
            "is_combination": self.is_combination,
            "prices": {
                "original_price": self.original_price,
                "price": self.price,
                "discount": self.discount,
            },
            "promotional": self.promotional,
            "date_to_promo": self.date_to_promo,
            "variants": self.fragments,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "short_description": self.short_description,
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "brand": self.brand,
            "vendor": self.vendor,
            "user": self.user_id,
            "prices": {
                "original_price": _number(self.original_price),
                "price": _number(self.price),
                "discount": _number(self.discount),
            },
            "is_combination": self.is_combination,
            "current_stock": self.current_stock,
            "sales_count": self.sales_count,
            "featured": self.featured,
            "promotional": self.promotional,
            "date_to_promo": self.date_to_promo,
            "rating": float(self.rating or 0),
            "num_reviews": self.num_reviews,
            "status": self.status,
            "category": self.category_id,
            "categories": [
                {"id": c.id, "name": c.name, "slug": c.slug} for c in self.categories
            ],
            "tags": [{"id": t.id, "name": t.name, "slug": t.slug} for t in self.tags],
            "variants": self.fragments,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class ProductVariant(Base):
    """One variant fragment of a combination product.

    The fragment is stored as-is: attribute-id keys mapping to the
    selected option id, next to ordinary fields such as ``price``,
    ``original_price``, ``discount``, ``quantity`` and ``image``.

    Attributes:
        id: Row identifier.
        product_id: Parent product ID.
        position: Declaration order within the product.
        fragment: The raw fragment mapping.
    """

    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    product_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fragment: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="variants")

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductVariant(product_id={self.product_id}, position={self.position})>"
