from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.accounts.models import UserRole


class Command(BaseCommand):
    help = "Create the storefront role groups and attach users to the group of their role"

    def handle(self, *args, **options):
        User = get_user_model()
        for role in UserRole.values:
            group, created = Group.objects.get_or_create(name=role)
            members = list(User.objects.filter(role=role))
            if members:
                group.user_set.add(*members)
            state = "created" if created else "exists"
            self.stdout.write(self.style.SUCCESS(f"{group.name}: {state}, {len(members)} member(s)"))
