from django.db import models


class ClientModel(models.Model):
    name = models.CharField(max_length=120)
    email = models.EmailField(max_length=254, null=True, blank=True)
    # National identification document (CPF and the like)
    document = models.CharField(max_length=32, unique=True, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "clients"
        ordering = ["id"]

    def __str__(self):
        return f"{self.name} ({self.id})"
