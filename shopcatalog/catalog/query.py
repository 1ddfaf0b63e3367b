"""SQL interpretation of search predicates.

Translates the predicate tree built by :mod:`shopcatalog.catalog.facets`
into SQLAlchemy clauses over the ``products`` table.
"""

from typing import Any

from sqlalchemy import Numeric, and_, cast, exists, false, func, or_, true
from sqlalchemy.sql.elements import ColumnElement

from shopcatalog.catalog.facets import (
    AllOf,
    AnyOf,
    BrandIn,
    CreatedBetween,
    EffectivePriceBetween,
    Everything,
    FieldCompare,
    FieldContains,
    FieldEquals,
    HasTags,
    InCategories,
    Nothing,
    Predicate,
    SortOrder,
    TextMatch,
    VariantFieldAbove,
    VariantSelects,
)
from shopcatalog.catalog.models import Product, ProductVariant, product_categories, product_tags

FIELDS: dict[str, Any] = {
    "vendor": Product.vendor,
    "user_id": Product.user_id,
    "status": Product.status,
    "featured": Product.featured,
    "promotional": Product.promotional,
    "original_price": Product.original_price,
    "discount": Product.discount,
    "is_combination": Product.is_combination,
    "rating": Product.rating,
    "current_stock": Product.current_stock,
    "sales_count": Product.sales_count,
    "category_id": Product.category_id,
    "updated_at": Product.updated_at,
    "name": Product.name,
    "slug": Product.slug,
}

LOCALIZED_FIELDS: dict[str, Any] = {
    "title": Product.title,
    "description": Product.description,
    "short_description": Product.short_description,
}


class PredicateCompiler:
    """Interpreter from predicate nodes to SQL clauses.

    Example usage:
        clause = PredicateCompiler().to_clause(compiled.store)
        query = select(Product).where(clause)
    """

    def to_clause(self, predicate: Predicate) -> ColumnElement[bool]:
        """Translate a predicate into a WHERE clause.

        Args:
            predicate: Store part of a compiled query.

        Returns:
            SQLAlchemy boolean clause.

        Raises:
            TypeError: For nodes the store cannot evaluate.
        """
        if isinstance(predicate, Everything):
            return true()
        if isinstance(predicate, Nothing):
            return false()
        if isinstance(predicate, AllOf):
            return and_(*(self.to_clause(p) for p in predicate.parts))
        if isinstance(predicate, AnyOf):
            return or_(*(self.to_clause(p) for p in predicate.parts))
        if isinstance(predicate, TextMatch):
            return self._text(predicate)
        if isinstance(predicate, FieldEquals):
            return self._column(predicate.field) == predicate.value
        if isinstance(predicate, FieldCompare):
            return self._compare(predicate)
        if isinstance(predicate, FieldContains):
            return self._contains(predicate)
        if isinstance(predicate, BrandIn):
            return func.lower(Product.brand).in_(predicate.brands)
        if isinstance(predicate, InCategories):
            return exists().where(
                product_categories.c.product_id == Product.id,
                product_categories.c.category_id.in_(predicate.category_ids),
            )
        if isinstance(predicate, HasTags):
            return exists().where(
                product_tags.c.product_id == Product.id,
                product_tags.c.tag_id.in_(predicate.tag_ids),
            )
        if isinstance(predicate, VariantSelects):
            return self._variants(predicate)
        if isinstance(predicate, VariantFieldAbove):
            return self._variant_above(predicate)
        if isinstance(predicate, CreatedBetween):
            return self._created(predicate)
        if isinstance(predicate, EffectivePriceBetween):
            raise TypeError("Effective price bounds are evaluated after price resolution")
        raise TypeError(f"Unsupported predicate: {type(predicate).__name__}")

    def _column(self, name: str) -> Any:
        try:
            return FIELDS[name]
        except KeyError:
            raise TypeError(f"Unknown product field: {name}") from None

    def _compare(self, predicate: FieldCompare) -> ColumnElement[bool]:
        column = self._column(predicate.field)
        if predicate.op == ">=":
            return column >= predicate.value
        if predicate.op == "<=":
            return column <= predicate.value
        if predicate.op == ">":
            return column > predicate.value
        if predicate.op == "<":
            return column < predicate.value
        raise TypeError(f"Unknown comparison: {predicate.op}")

    def _contains(self, predicate: FieldContains) -> ColumnElement[bool]:
        if predicate.locale is None:
            column = self._column(predicate.field)
        else:
            try:
                column = LOCALIZED_FIELDS[predicate.field][predicate.locale].as_string()
            except KeyError:
                raise TypeError(f"Unknown localized field: {predicate.field}") from None
        return column.icontains(predicate.text, autoescape=True)

    def _text(self, predicate: TextMatch) -> ColumnElement[bool]:
        locale = predicate.locale
        return or_(
            Product.title[locale].as_string().icontains(predicate.text, autoescape=True),
            Product.description[locale].as_string().icontains(predicate.text, autoescape=True),
            Product.short_description[locale]
            .as_string()
            .icontains(predicate.text, autoescape=True),
            Product.name.icontains(predicate.text, autoescape=True),
        )

    def _variants(self, predicate: VariantSelects) -> ColumnElement[bool]:
        selections = [
            ProductVariant.fragment[attribute_id].as_string().in_(option_ids)
            for attribute_id, option_ids in predicate.options
        ]
        return exists().where(
            ProductVariant.product_id == Product.id,
            or_(*selections),
        )

    def _variant_above(self, predicate: VariantFieldAbove) -> ColumnElement[bool]:
        # fragments hold numbers as JSON numbers or numeric strings
        raw = ProductVariant.fragment[predicate.field].as_string()
        value = cast(func.nullif(raw, ""), Numeric(12, 2))
        return exists().where(
            ProductVariant.product_id == Product.id,
            value > predicate.value,
        )

    def _created(self, predicate: CreatedBetween) -> ColumnElement[bool]:
        conditions = []
        if predicate.start is not None:
            conditions.append(Product.created_at >= predicate.start)
        if predicate.end is not None:
            conditions.append(Product.created_at <= predicate.end)
        return and_(true(), *conditions)


def sort_columns(order: SortOrder) -> list[Any]:
    """ORDER BY columns for a non-price order.

    Args:
        order: Requested order.

    Returns:
        Columns to order by, with the id as final tie-break.
    """
    columns = {
        SortOrder.NEWEST: [Product.created_at.desc()],
        SortOrder.DATE_ADDED_DESC: [Product.created_at.desc()],
        SortOrder.DATE_UPDATED_ASC: [Product.updated_at.asc()],
        SortOrder.DATE_UPDATED_DESC: [Product.updated_at.desc()],
        SortOrder.TOP_RATED: [Product.rating.desc()],
        SortOrder.POPULAR: [Product.sales_count.desc()],
    }
    return [*columns.get(order, []), Product.id.desc()]

