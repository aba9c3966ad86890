"""Product lookup adapter backed by the Django ORM."""

from decimal import Decimal

from apps.orders.domain import Product, ProductCategory, ProductLookupPort
from apps.orders.exceptions import ProductNotFound

from .models import ProductModel


def to_domain(obj: ProductModel) -> Product:
    return Product(
        id=obj.id,
        name=obj.name,
        category=ProductCategory(obj.category),
        price=Decimal(obj.price),
        description=obj.description,
    )


class ProductRepository(ProductLookupPort):
    def find_product_by_id(self, product_id: int) -> Product:
        """Return the product with the given id.

        Raises:
            ProductNotFound: If no product has that id.
        """
        try:
            obj = ProductModel.objects.get(pk=product_id)
        except ProductModel.DoesNotExist:
            raise ProductNotFound(product_id) from None
        return to_domain(obj)
