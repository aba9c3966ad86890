from django.db import models


class ProductModel(models.Model):
    class Category(models.TextChoices):
        SANDWICH = "SANDWICH"
        SIDE = "SIDE"
        DRINK = "DRINK"
        DESSERT = "DESSERT"

    name = models.CharField(max_length=120)
    category = models.CharField(max_length=16, choices=Category.choices)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "products"
        ordering = ["category", "name"]

    def __str__(self):
        return f"{self.name} ({self.category})"
