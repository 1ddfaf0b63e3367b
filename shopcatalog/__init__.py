"""Shop catalog service.

Faceted product search, effective pricing, variant grouping and
category trees over a relational catalog store.
"""
