from django.core.management.base import BaseCommand

from apps.customization.costs import DEFAULT_FABRIC_COSTS, DEFAULT_SIZE_PRICES
from apps.customization.models import FabricQuality, PrintingSize, PrintingTechnique
from apps.customization.services import DEFAULT_TECHNIQUES


class Command(BaseCommand):
    help = "Seed default printing techniques, fabric qualities and size prices."

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset-prices",
            action="store_true",
            help="Overwrite prices of existing rows with the defaults.",
        )

    def handle(self, *args, **options):
        reset_prices = options["reset_prices"]

        created_techniques = 0
        for code, (name, base_cost) in DEFAULT_TECHNIQUES.items():
            technique, created = PrintingTechnique.objects.get_or_create(
                code=code,
                defaults={"name": name, "base_cost": base_cost, "design_area": "A4"},
            )
            if created:
                created_techniques += 1
            elif reset_prices and technique.base_cost != base_cost:
                technique.base_cost = base_cost
                technique.save(update_fields=["base_cost", "updated_at"])

        created_fabrics = 0
        for quality, cost in DEFAULT_FABRIC_COSTS.items():
            fabric, created = FabricQuality.objects.get_or_create(quality=quality, defaults={"cost": cost})
            if created:
                created_fabrics += 1
            elif reset_prices and fabric.cost != cost:
                fabric.cost = cost
                fabric.save(update_fields=["cost", "updated_at"])

        created_sizes = 0
        for size, cost in DEFAULT_SIZE_PRICES.items():
            printing_size, created = PrintingSize.objects.get_or_create(size=size, defaults={"cost": cost})
            if created:
                created_sizes += 1
            elif reset_prices and printing_size.cost != cost:
                printing_size.cost = cost
                printing_size.save(update_fields=["cost", "updated_at"])

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed customization costs completed. techniques_created={created_techniques} "
                f"fabric_qualities_created={created_fabrics} sizes_created={created_sizes}"
            )
        )
