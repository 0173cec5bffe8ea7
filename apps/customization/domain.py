"""Domain representation of a customization submission.

A submission is either a personal item the customer supplies or a catalog
product. Both flatten to the same persisted record shape, with the fields of
the other branch left null.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal

from apps.customization.costs import requires_fabric_purchase, to_money
from apps.customization.exceptions import CustomizationValidationError
from apps.customization.models import ItemType


@dataclass(frozen=True)
class ContactDetails:
    phone_number: str = ""
    whatsapp_number: str = ""
    delivery_address: str = ""
    notes: str = ""

    def validate_for_delivery(self):
        if not self.phone_number.strip():
            raise CustomizationValidationError("phone_number", "Phone number is required for delivery.")
        if not self.delivery_address.strip():
            raise CustomizationValidationError("delivery_address", "Delivery address is required.")

    def to_payload(self):
        return {
            "phone_number": self.phone_number,
            "whatsapp_number": self.whatsapp_number,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
        }


def _require(value, field_name, message):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise CustomizationValidationError(field_name, message)


def _validate_common(customization):
    _require(customization.technique_id, "technique_id", "Select a printing technique.")
    _require(customization.design_url, "design_url", "Upload a design before submitting.")


def _validate_quantity(quantity):
    if not isinstance(quantity, int) or quantity < 1:
        raise CustomizationValidationError("quantity", "Quantity must be at least 1.")


@dataclass(frozen=True)
class PersonalItemCustomization:
    technique_id: str
    design_url: str
    item_description: str
    size: str
    quantity: int = 1
    color: str = ""
    technique_name: str = ""
    image_url: str | None = None
    material_id: str | None = None
    fabric_purchase_option: str | None = None
    fabric_quality: int | None = None
    contact: ContactDetails = field(default_factory=ContactDetails)

    item_type = ItemType.PERSONAL_ITEM

    def validate(self):
        _validate_common(self)
        _require(self.item_description, "item_description", "Describe the item to customize.")
        _require(self.size, "size", "Select a size.")
        _validate_quantity(self.quantity)

    @property
    def title(self):
        return f"Personal Item Customization - {self.item_description}"

    @property
    def description(self):
        return (
            f"Personal item customization using {self.technique_name or self.technique_id} technique.\n\n"
            f"Item: {self.item_description}\nSize: {self.size}\n"
            f"Color: {self.color or 'N/A'}\nQuantity: {self.quantity}"
        )

    def with_technique_name(self, name):
        return replace(self, technique_name=name)

    def record_fields(self):
        buying = requires_fabric_purchase(self.fabric_purchase_option)
        return {
            "item_type": self.item_type,
            "title": self.title,
            "description": self.description,
            "technique_id": self.technique_id,
            "technique_name": self.technique_name,
            "design_url": self.design_url,
            "image_url": self.image_url,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "material_id": self.material_id,
            "fabric_purchase_option": self.fabric_purchase_option,
            "fabric_quality": self.fabric_quality if buying else None,
            "product_id": None,
            "product_name": None,
            "product_price": None,
            "product_size": None,
            **self.contact.to_payload(),
        }

    def to_payload(self):
        return {
            "item_type": str(self.item_type),
            "technique_id": self.technique_id,
            "technique_name": self.technique_name,
            "design_url": self.design_url,
            "image_url": self.image_url,
            "item_description": self.item_description,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "material_id": self.material_id,
            "fabric_purchase_option": self.fabric_purchase_option,
            "fabric_quality": self.fabric_quality,
            "contact": self.contact.to_payload(),
        }


@dataclass(frozen=True)
class ProductCustomization:
    product_id: str
    technique_id: str
    design_url: str
    size: str
    quantity: int = 1
    color: str = ""
    technique_name: str = ""
    product_name: str = ""
    product_price: Decimal | None = None
    image_url: str | None = None
    contact: ContactDetails = field(default_factory=ContactDetails)

    item_type = ItemType.PRODUCT

    def validate(self):
        _require(self.product_id, "product_id", "Select a product to customize.")
        _validate_common(self)
        _require(self.size, "size", "Select a size.")
        _validate_quantity(self.quantity)

    @property
    def title(self):
        return f"Product Customization - {self.product_name}"

    @property
    def description(self):
        return f"Product customization using {self.technique_name or self.technique_id} technique."

    def with_technique_name(self, name):
        return replace(self, technique_name=name)

    def with_product(self, product):
        return replace(self, product_id=str(product.id), product_name=product.name, product_price=product.price)

    def record_fields(self):
        return {
            "item_type": self.item_type,
            "title": self.title,
            "description": self.description,
            "technique_id": self.technique_id,
            "technique_name": self.technique_name,
            "design_url": self.design_url,
            "image_url": self.image_url,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "material_id": None,
            "fabric_purchase_option": None,
            "fabric_quality": None,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_price": self.product_price,
            "product_size": self.size,
            **self.contact.to_payload(),
        }

    def to_payload(self):
        return {
            "item_type": str(self.item_type),
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_price": str(self.product_price) if self.product_price is not None else None,
            "technique_id": self.technique_id,
            "technique_name": self.technique_name,
            "design_url": self.design_url,
            "image_url": self.image_url,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "contact": self.contact.to_payload(),
        }


def customization_from_payload(payload):
    """Rebuild a customization from the dict produced by ``to_payload``."""
    data = dict(payload)
    item_type = data.pop("item_type", ItemType.PERSONAL_ITEM)
    contact = ContactDetails(**(data.pop("contact", None) or {}))
    if item_type == ItemType.PRODUCT:
        price = data.pop("product_price", None)
        return ProductCustomization(
            contact=contact,
            product_price=to_money(price) if price is not None else None,
            **data,
        )
    return PersonalItemCustomization(contact=contact, **data)
