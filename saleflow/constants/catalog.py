# saleflow/constants/catalog.py

from decimal import Decimal

# Shopify caps `nodes(ids:)` lookups at 250 ids per query.
VARIANT_BATCH_SIZE = 250

# Live price may drift this far from the expected sale price before a
# revert treats the variant as manually edited.
PRICE_DRIFT_TOLERANCE = Decimal("0.01")
