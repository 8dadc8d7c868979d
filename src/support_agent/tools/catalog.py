"""Mock product catalog tools for the electronics store assistant.

Two tools are exposed to the response model:

- ``search_product``: keyword search over name, category and description
- ``get_product_details``: full specification sheet for one product id

The catalog is static in-memory data; swap ``build_catalog_registry`` for a
real inventory backend in production.
"""

from typing import Any

from support_agent.tools.registry import ToolRegistry
from support_agent.tools.types import ToolDefinition, ToolParameter

SEARCH_PRODUCT = "search_product"
GET_PRODUCT_DETAILS = "get_product_details"

DEFAULT_MAX_RESULTS = 10
MAX_RESULTS_LIMIT = 20

PRODUCTS: list[dict[str, Any]] = [
    {
        "id": "prod-001",
        "name": "iPhone 15 Pro",
        "category": "smartphones",
        "price": 39900.0,
        "description": "Apple smartphone with A17 Pro chip, titanium frame and pro camera system",
        "in_stock": True,
    },
    {
        "id": "prod-002",
        "name": "Samsung Galaxy S24 Ultra",
        "category": "smartphones",
        "price": 42900.0,
        "description": "Android flagship phone with built-in S Pen and 200MP camera",
        "in_stock": True,
    },
    {
        "id": "prod-003",
        "name": "MacBook Air M3",
        "category": "laptops",
        "price": 42900.0,
        "description": "Thin and light laptop with Apple M3 chip and 13-inch display",
        "in_stock": False,
    },
    {
        "id": "prod-004",
        "name": "AirPods Pro (3rd generation)",
        "category": "audio",
        "price": 8900.0,
        "description": "Wireless earbuds with active noise cancellation",
        "in_stock": True,
    },
    {
        "id": "prod-005",
        "name": "iPad Pro 12.9-inch",
        "category": "tablets",
        "price": 35900.0,
        "description": "Professional tablet with M2 chip and XDR display",
        "in_stock": True,
    },
    {
        "id": "prod-006",
        "name": "Sony WH-1000XM5",
        "category": "audio",
        "price": 12900.0,
        "description": "Over-ear wireless headphones with noise cancellation",
        "in_stock": True,
    },
    {
        "id": "prod-007",
        "name": "Dell XPS 13",
        "category": "laptops",
        "price": 35900.0,
        "description": "Premium ultrabook laptop with Intel 13th Gen processor",
        "in_stock": True,
    },
    {
        "id": "prod-008",
        "name": "Apple Watch Ultra 2",
        "category": "wearables",
        "price": 29900.0,
        "description": "Rugged smartwatch with precision GPS for outdoor use",
        "in_stock": False,
    },
    {
        "id": "prod-009",
        "name": "Acer Aspire 5 A515-58",
        "category": "laptops",
        "price": 28900.0,
        "description": "Budget laptop with Intel Core i5, 8GB RAM and 512GB SSD for everyday work",
        "in_stock": True,
    },
    {
        "id": "prod-010",
        "name": "Lenovo IdeaPad 3 Gaming",
        "category": "laptops",
        "price": 29500.0,
        "description": "Gaming laptop with AMD Ryzen 5, 8GB RAM and GTX 1650 graphics",
        "in_stock": True,
    },
    {
        "id": "prod-011",
        "name": "HP Pavilion 15-eh3000",
        "category": "laptops",
        "price": 27900.0,
        "description": "All-purpose laptop with AMD Ryzen 5, 8GB RAM and 256GB SSD",
        "in_stock": True,
    },
    {
        "id": "prod-012",
        "name": "ASUS VivoBook 15 X1502ZA",
        "category": "laptops",
        "price": 24900.0,
        "description": "Affordable laptop with Intel Core i3, 8GB RAM and 512GB SSD",
        "in_stock": True,
    },
]

SPECIFICATIONS: dict[str, dict[str, str]] = {
    "prod-001": {
        "display": "6.1-inch Super Retina XDR",
        "chip": "A17 Pro",
        "storage": "128GB, 256GB, 512GB, 1TB",
        "camera": "48MP Main, 12MP Ultra Wide, 12MP Telephoto",
        "connectivity": "5G, WiFi 6E, Bluetooth 5.3",
    },
    "prod-002": {
        "display": "6.8-inch Dynamic AMOLED 2X",
        "processor": "Snapdragon 8 Gen 3",
        "storage": "256GB, 512GB, 1TB",
        "battery": "5000mAh with 45W fast charging",
        "s_pen": "Built-in",
    },
    "prod-003": {
        "display": "13.6-inch Liquid Retina",
        "chip": "Apple M3, 8-core CPU, 10-core GPU",
        "memory": "8GB, 16GB, 24GB unified memory",
        "battery": "Up to 18 hours",
    },
    "prod-009": {
        "processor": "Intel Core i5-1335U",
        "memory": "8GB DDR4",
        "storage": "512GB NVMe SSD",
        "display": "15.6-inch FHD IPS",
    },
    "prod-010": {
        "processor": "AMD Ryzen 5 5600H",
        "memory": "8GB DDR4",
        "graphics": "NVIDIA GeForce GTX 1650 4GB",
        "display": "15.6-inch FHD 120Hz",
    },
    "prod-011": {
        "processor": "AMD Ryzen 5 7530U",
        "memory": "8GB DDR4",
        "storage": "256GB NVMe SSD",
        "display": "15.6-inch FHD IPS",
    },
}

_PRODUCTS_BY_ID = {product["id"]: product for product in PRODUCTS}


def search_product(
    query: str, category: str | None = None, max_results: int | None = None
) -> dict[str, Any]:
    """Case-insensitive keyword search over the catalog.

    Args:
        query: Keyword matched against name, category and description.
        category: Optional exact category filter (case-insensitive).
        max_results: Result cap; defaults to 10.

    Returns:
        ``{"products": [...], "total": n}``.

    Raises:
        ValueError: If the query is empty.
    """
    if not query:
        raise ValueError("query is required")
    limit = max_results or DEFAULT_MAX_RESULTS
    needle = query.lower()

    matches = []
    for product in PRODUCTS:
        haystack = (product["name"], product["category"], product["description"])
        if not any(needle in field.lower() for field in haystack):
            continue
        if category and product["category"].lower() != category.lower():
            continue
        matches.append(dict(product))

    matches = matches[:limit]
    return {"products": matches, "total": len(matches)}


def get_product_details(product_id: str) -> dict[str, Any]:
    """Return the specification sheet for a product.

    Products without a detailed sheet get a basic one built from catalog data.

    Raises:
        ValueError: If the id is empty or unknown.
    """
    if not product_id:
        raise ValueError("product_id is required")
    product = _PRODUCTS_BY_ID.get(product_id)
    if product is None:
        raise ValueError(f"product not found: {product_id}")

    specifications = SPECIFICATIONS.get(product_id) or {
        "category": product["category"],
        "in_stock": str(product["in_stock"]).lower(),
    }
    return {
        "id": product["id"],
        "name": product["name"],
        "description": product["description"],
        "price": product["price"],
        "specifications": dict(specifications),
        "in_stock": product["in_stock"],
    }


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value).strip()


def sanitize_search_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Normalize model-supplied search arguments.

    Trims the query (coercing non-strings), drops a non-string category, and
    clamps ``max_results`` to [1, 20] (dropping it if not numeric).
    """
    cleaned = dict(arguments)
    cleaned["query"] = _as_text(cleaned.get("query"))

    category = cleaned.get("category")
    if isinstance(category, str) and category.strip():
        cleaned["category"] = category.strip()
    else:
        cleaned.pop("category", None)

    max_results = cleaned.get("max_results")
    try:
        if isinstance(max_results, bool):
            raise TypeError("boolean max_results")
        limit = int(float(max_results))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        cleaned.pop("max_results", None)
    else:
        cleaned["max_results"] = min(max(limit, 1), MAX_RESULTS_LIMIT)
    return cleaned


def sanitize_details_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Trim (and coerce to text) the product id."""
    cleaned = dict(arguments)
    cleaned["product_id"] = _as_text(cleaned.get("product_id"))
    return cleaned


SEARCH_PRODUCT_TOOL = ToolDefinition(
    name=SEARCH_PRODUCT,
    description=(
        "Search for products in inventory by keyword (product type, brand or model). "
        "Returns product id, name, price and availability. Use whenever the customer "
        "mentions a product."
    ),
    parameters=[
        ToolParameter(
            name="query",
            type="string",
            description="Search keywords, e.g. 'laptop', 'iPhone', 'Samsung'",
        ),
        ToolParameter(
            name="category",
            type="string",
            description="Optional category: smartphones, laptops, tablets, audio, wearables",
            required=False,
        ),
        ToolParameter(
            name="max_results",
            type="integer",
            description="Maximum number of products to return (default 10, max 20)",
            required=False,
        ),
    ],
)

GET_PRODUCT_DETAILS_TOOL = ToolDefinition(
    name=GET_PRODUCT_DETAILS,
    description=(
        "Get the full specification sheet of one product. Use when the customer needs "
        "details or a comparison."
    ),
    parameters=[
        ToolParameter(
            name="product_id",
            type="string",
            description="Exact product id from search_product results, e.g. prod-001",
        ),
    ],
)


def build_catalog_registry() -> ToolRegistry:
    """Create a registry holding the catalog tools."""
    registry = ToolRegistry()
    registry.register(SEARCH_PRODUCT_TOOL, search_product, sanitize_search_arguments)
    registry.register(GET_PRODUCT_DETAILS_TOOL, get_product_details, sanitize_details_arguments)
    return registry
