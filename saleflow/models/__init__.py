# Sales
from saleflow.models.sales.sale_models import Sale, SaleItem

# Shops
from saleflow.models.shops.shop_models import ShopSession
