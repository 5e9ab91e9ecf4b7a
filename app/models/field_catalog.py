"""
Field Catalog

Static configuration of the catalog fields an import file can be mapped to,
with their validation constraints, header synonyms used by auto-mapping,
field groups and the sample data used for template export.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FieldType(str, Enum):
    """Catalog field data type"""
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    ENUM = "enum"
    ARRAY = "array"


class FieldConstraints(BaseModel):
    """Validation constraints for a catalog field"""
    model_config = ConfigDict(frozen=True)

    pattern: Optional[str] = Field(None, description="Regex the whole value must match")
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    allowed_values: Optional[List[str]] = None
    unique: bool = Field(default=False, description="Value must not repeat within one import file")


class FieldCatalogEntry(BaseModel):
    """One target field of the product catalog"""
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    recommended: bool = Field(default=False, description="Blank values raise a warning")
    description: str = ""
    placeholder: Optional[str] = None
    constraints: FieldConstraints = Field(default_factory=FieldConstraints)
    group: str = "attributes"
    synonyms: List[str] = Field(default_factory=list, description="Known header variations")


FIELD_GROUPS: Dict[str, str] = {
    "basic": "Basic Information",
    "pricing": "Pricing & Stock",
    "categorization": "Categories & Classification",
    "physical": "Physical Properties",
    "identifiers": "Product Identifiers",
    "status": "Status & Visibility",
    "attributes": "Additional Attributes",
    "seo": "SEO & Marketing",
    "dates": "Important Dates",
}

PRICE_LIMITS = FieldConstraints(min_value=0.01, max_value=999999.99)
STOCK_LIMITS = FieldConstraints(min_value=0, max_value=999999)

FIELD_CATALOG: List[FieldCatalogEntry] = [
    FieldCatalogEntry(
        key="sku", label="SKU", required=True, group="basic",
        description="Unique product identifier (alphanumeric, hyphens, underscores)",
        placeholder="e.g., HP-001, LAPTOP-DELL-XPS",
        constraints=FieldConstraints(pattern=r"^[A-Za-z0-9\-_]+$", min_length=2, max_length=50, unique=True),
        synonyms=["product_code", "item_code", "article_number", "part_number", "code", "reference"],
    ),
    FieldCatalogEntry(
        key="name", label="Product Name", required=True, group="basic",
        description="Display name of the product",
        placeholder="e.g., Premium Wireless Headphones",
        constraints=FieldConstraints(min_length=3, max_length=255),
        synonyms=["name", "title", "product_name", "item_name", "product_title"],
    ),
    FieldCatalogEntry(
        key="description", label="Description", recommended=True, group="basic",
        description="Detailed product description (HTML supported)",
        synonyms=["long_description", "details", "product_description"],
    ),
    FieldCatalogEntry(
        key="shortDescription", label="Short Description", group="basic",
        description="Brief product summary (plain text)",
        constraints=FieldConstraints(max_length=500),
        synonyms=["short_description", "summary", "brief", "excerpt"],
    ),
    FieldCatalogEntry(
        key="price", label="Price", type=FieldType.NUMBER, required=True, group="pricing",
        description="Product price (excluding tax)",
        placeholder="e.g., 299.99",
        constraints=PRICE_LIMITS,
        synonyms=["cost", "amount", "unit_price", "selling_price", "retail_price", "net_price"],
    ),
    FieldCatalogEntry(
        key="priceWithTax", label="Price with Tax", type=FieldType.NUMBER, group="pricing",
        description="Product price including tax",
        constraints=PRICE_LIMITS,
        synonyms=["price_with_tax", "price_incl_tax", "gross_price", "final_price"],
    ),
    FieldCatalogEntry(
        key="wholesalePrice", label="Wholesale Price", type=FieldType.NUMBER, group="pricing",
        description="Wholesale/cost price",
        constraints=FieldConstraints(min_value=0, max_value=999999.99),
        synonyms=["wholesale_price", "cost_price", "purchase_price", "trade_price"],
    ),
    FieldCatalogEntry(
        key="category", label="Category", recommended=True, group="categorization",
        description="Product category (use > for hierarchy)",
        placeholder="e.g., Electronics > Audio > Headphones",
        synonyms=["cat", "product_category", "type", "group"],
    ),
    FieldCatalogEntry(
        key="brand", label="Brand", recommended=True, group="categorization",
        description="Product brand",
        constraints=FieldConstraints(max_length=100),
        synonyms=["make", "vendor", "producer"],
    ),
    FieldCatalogEntry(
        key="manufacturer", label="Manufacturer", group="categorization",
        description="Product manufacturer (if different from brand)",
        constraints=FieldConstraints(max_length=100),
        synonyms=["maker"],
    ),
    FieldCatalogEntry(
        key="supplier", label="Supplier", group="categorization",
        description="Product supplier/vendor",
        constraints=FieldConstraints(max_length=100),
        synonyms=["distributor"],
    ),
    FieldCatalogEntry(
        key="stock", label="Stock Quantity", type=FieldType.INTEGER, group="pricing",
        description="Available stock quantity",
        constraints=STOCK_LIMITS,
        synonyms=["stock", "quantity", "qty", "available", "inventory", "stock_quantity"],
    ),
    FieldCatalogEntry(
        key="minStock", label="Minimum Stock", type=FieldType.INTEGER, group="pricing",
        description="Minimum stock level for alerts",
        constraints=STOCK_LIMITS,
        synonyms=["min_stock", "reorder_level", "low_stock_threshold"],
    ),
    FieldCatalogEntry(
        key="weight", label="Weight (kg)", type=FieldType.NUMBER, group="physical",
        description="Product weight in kilograms",
        constraints=FieldConstraints(min_value=0, max_value=99999.99),
        synonyms=["weight", "mass", "weight_kg", "kg"],
    ),
    FieldCatalogEntry(
        key="dimensions", label="Dimensions", group="physical",
        description="Product dimensions (L x W x H in cm)",
        synonyms=["measurements", "size_cm"],
    ),
    FieldCatalogEntry(
        key="ean", label="EAN/Barcode", group="identifiers",
        description="European Article Number or barcode",
        constraints=FieldConstraints(pattern=r"^\d{8,14}$", unique=True),
        synonyms=["ean", "barcode", "ean13", "gtin", "upc"],
    ),
    FieldCatalogEntry(
        key="isbn", label="ISBN", group="identifiers",
        description="International Standard Book Number (for books)",
        synonyms=["isbn13"],
    ),
    FieldCatalogEntry(
        key="mpn", label="MPN", group="identifiers",
        description="Manufacturer Part Number",
        constraints=FieldConstraints(max_length=100),
        synonyms=["manufacturer_part_number"],
    ),
    FieldCatalogEntry(
        key="status", label="Status", type=FieldType.ENUM, group="status",
        description="Product availability status",
        constraints=FieldConstraints(allowed_values=["active", "inactive", "draft", "discontinued"]),
        synonyms=["state", "active", "enabled"],
    ),
    FieldCatalogEntry(
        key="visibility", label="Visibility", type=FieldType.ENUM, group="status",
        description="Product visibility in catalog",
        constraints=FieldConstraints(allowed_values=["everywhere", "catalog", "search", "nowhere"]),
        synonyms=["visible"],
    ),
    FieldCatalogEntry(
        key="condition", label="Condition", type=FieldType.ENUM, group="status",
        description="Product condition",
        constraints=FieldConstraints(allowed_values=["new", "used", "refurbished", "damaged"]),
    ),
    FieldCatalogEntry(
        key="featured", label="Featured", type=FieldType.BOOLEAN, group="status",
        description="Show the product in featured listings (yes/no)",
        synonyms=["is_featured", "highlight"],
    ),
    FieldCatalogEntry(
        key="taxRule", label="Tax Rule", group="attributes",
        description="Tax rule identifier or name",
        synonyms=["tax_rule", "tax", "vat", "tax_class"],
    ),
    FieldCatalogEntry(
        key="tags", label="Tags", type=FieldType.ARRAY, group="categorization",
        description="Product tags (comma-separated)",
        synonyms=["keywords", "labels", "categories"],
    ),
    FieldCatalogEntry(
        key="features", label="Features", type=FieldType.ARRAY, group="attributes",
        description="Key product features (comma-separated)",
        synonyms=["highlights", "bullet_points"],
    ),
    FieldCatalogEntry(
        key="color", label="Color", group="physical",
        description="Primary product color",
        synonyms=["colour"],
    ),
    FieldCatalogEntry(
        key="size", label="Size", group="physical",
        description="Product size",
    ),
    FieldCatalogEntry(
        key="material", label="Material", group="physical",
        description="Primary product material",
        synonyms=["fabric"],
    ),
    FieldCatalogEntry(
        key="warranty", label="Warranty (months)", type=FieldType.INTEGER, group="attributes",
        description="Warranty period in months",
        constraints=FieldConstraints(min_value=0, max_value=120),
        synonyms=["warranty", "warranty_months", "guarantee"],
    ),
    FieldCatalogEntry(
        key="metaTitle", label="SEO Title", group="seo",
        description="SEO meta title",
        constraints=FieldConstraints(max_length=160),
        synonyms=["meta_title"],
    ),
    FieldCatalogEntry(
        key="metaDescription", label="SEO Description", group="seo",
        description="SEO meta description",
        constraints=FieldConstraints(max_length=320),
        synonyms=["meta_description"],
    ),
    FieldCatalogEntry(
        key="availableDate", label="Available Date", type=FieldType.DATE, group="dates",
        description="Product availability date (YYYY-MM-DD)",
        synonyms=["available_date", "release_date", "available_from"],
    ),
    FieldCatalogEntry(
        key="discontinueDate", label="Discontinue Date", type=FieldType.DATE, group="dates",
        description="Product discontinuation date (YYYY-MM-DD)",
        synonyms=["discontinue_date", "discontinued_on", "end_date"],
    ),
]

# Representative rows used by template export, keyed by field key
SAMPLE_ROWS: List[Dict[str, str]] = [
    {
        "sku": "DEMO-001", "name": "Premium Wireless Headphones",
        "description": "High-quality audio experience with active noise cancellation and 30-hour battery life.",
        "shortDescription": "Premium wireless headphones with ANC",
        "price": "299.99", "priceWithTax": "368.99", "wholesalePrice": "199.99",
        "category": "Electronics > Audio > Headphones", "brand": "Sony", "manufacturer": "Sony",
        "supplier": "Tech Distributor Ltd", "stock": "100", "minStock": "10", "weight": "0.25",
        "dimensions": "20 x 15 x 8", "ean": "4548736112100", "isbn": "", "mpn": "WH-1000XM4",
        "status": "active", "visibility": "everywhere", "condition": "new", "featured": "yes",
        "taxRule": "VAT 23%", "tags": "wireless, premium, bestseller",
        "features": "Bluetooth 5.0, 30h battery, ANC", "color": "Black", "size": "One Size",
        "material": "Plastic", "warranty": "24", "metaTitle": "Premium Wireless Headphones",
        "metaDescription": "Wireless headphones with exceptional audio quality.",
        "availableDate": "2024-01-15", "discontinueDate": "",
    },
    {
        "sku": "DEMO-002", "name": "Smart Fitness Tracker",
        "description": "Track your daily activities, heart rate, and sleep patterns.",
        "shortDescription": "Fitness tracker with heart rate monitor",
        "price": "199.99", "priceWithTax": "245.99", "wholesalePrice": "120.00",
        "category": "Electronics > Wearables > Fitness", "brand": "Fitbit", "manufacturer": "Fitbit",
        "supplier": "Tech Distributor Ltd", "stock": "50", "minStock": "5", "weight": "0.05",
        "dimensions": "4 x 2 x 1", "ean": "0810038851234", "isbn": "", "mpn": "FB-CHARGE6",
        "status": "active", "visibility": "catalog", "condition": "new", "featured": "no",
        "taxRule": "VAT 23%", "tags": "fitness, wearable",
        "features": "Heart rate, Sleep tracking, GPS", "color": "Blue", "size": "M",
        "material": "Silicone", "warranty": "12", "metaTitle": "Smart Fitness Tracker",
        "metaDescription": "Track activity, heart rate and sleep.",
        "availableDate": "2024-03-01", "discontinueDate": "",
    },
    {
        "sku": "DEMO-003", "name": "Ergonomic Office Chair",
        "description": "Comfortable office chair with lumbar support and adjustable height.",
        "shortDescription": "Ergonomic chair with lumbar support",
        "price": "449.99", "priceWithTax": "553.49", "wholesalePrice": "300.00",
        "category": "Furniture > Office > Chairs", "brand": "Herman Miller",
        "manufacturer": "Herman Miller", "supplier": "Office Supplies Co", "stock": "25",
        "minStock": "2", "weight": "18.5", "dimensions": "68 x 68 x 110", "ean": "0889000123456",
        "isbn": "", "mpn": "HM-AERON-B", "status": "draft", "visibility": "search",
        "condition": "new", "featured": "no", "taxRule": "VAT 23%", "tags": "office, furniture",
        "features": "Lumbar support, Adjustable height", "color": "Graphite", "size": "B",
        "material": "Mesh", "warranty": "120", "metaTitle": "Ergonomic Office Chair",
        "metaDescription": "Office chair with lumbar support for all-day comfort.",
        "availableDate": "2024-02-10", "discontinueDate": "2026-12-31",
    },
]

_FIELDS_BY_KEY: Dict[str, FieldCatalogEntry] = {field.key: field for field in FIELD_CATALOG}


def get_field(key: str) -> Optional[FieldCatalogEntry]:
    """Look up a catalog entry by key."""
    return _FIELDS_BY_KEY.get(key)


def required_fields(catalog: Optional[List[FieldCatalogEntry]] = None) -> List[FieldCatalogEntry]:
    """Catalog entries that must be mapped before validation can run."""
    return [field for field in (catalog or FIELD_CATALOG) if field.required]
