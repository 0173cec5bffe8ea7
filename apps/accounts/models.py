from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    CUSTOMER = "CUSTOMER", "Customer"
    SHOP_MANAGER = "SHOP_MANAGER", "Shop manager"
    SUPER_ADMIN = "SUPER_ADMIN", "Super admin"


class User(AbstractUser):
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.CUSTOMER)

    @property
    def display_name(self):
        full_name = self.get_full_name().strip()
        if full_name:
            return full_name
        if self.email:
            return self.email.split("@")[0]
        return self.username
