"""Product categories and status vocabularies shared across the service."""

PRODUCT_CATEGORIES: tuple[str, ...] = (
    "Textiles & Apparel",
    "Spices & Food Products",
    "Handicrafts & Home Decor",
    "Electronics & Components",
    "Pharmaceuticals & Healthcare",
    "Chemicals & Materials",
    "Automotive Parts & Accessories",
    "Jewelry & Gems",
    "Leather Goods & Footwear",
    "Agricultural Products",
    "Industrial Equipment & Machinery",
    "Cosmetics & Personal Care",
    "Sports & Fitness Equipment",
    "Toys & Games",
    "Furniture & Furnishings",
    "Paper & Packaging Materials",
    "Rubber & Plastic Products",
    "Metal & Metallurgy",
    "Tea & Coffee Products",
    "Ayurvedic & Herbal Products",
)

USER_TYPES = ("buyer", "supplier", "admin")
VERIFICATION_STATUSES = ("pending", "verified", "rejected")

RFQ_STATUSES = ("pending_approval", "approved", "matched", "quoted", "closed", "rejected")
QUOTATION_STATUSES = ("pending_review", "approved", "rejected", "sent_to_buyer", "accepted")
ORDER_STATUSES = ("confirmed", "in_production", "shipped", "delivered", "completed", "cancelled")
SAMPLE_STATUSES = ("requested", "approved_by_admin", "shipped_by_supplier", "delivered", "rejected")
QUESTION_STATUSES = (
    "pending_admin", "approved_by_admin", "sent_to_buyer", "answered_by_buyer", "published", "rejected",
)


def is_known_category(name: str) -> bool:
    return name in PRODUCT_CATEGORIES


def sql_in_list(values: tuple[str, ...]) -> str:
    return ",".join(f"'{v}'" for v in values)
