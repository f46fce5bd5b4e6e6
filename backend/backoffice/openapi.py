"""Minimal deterministic OpenAPI spec builder.

Scope (purposefully narrow):
- Auth endpoints: /auth/login (POST), /auth/me (GET)
- Order workflow endpoints under /orders, each annotated with the permission it requires
- Order schema carries the status values as `x-transitions` (any status may follow any other)
"""
from typing import Any, Dict, List, Tuple

from backoffice.models.order import Order
from backoffice.services.seed_orders import MAX_TEST_ORDERS

__all__ = ["build_openapi_spec"]

# (path, method, summary, permission or None)
ORDER_OPERATIONS: List[Tuple[str, str, str, str]] = [
    ("/orders", "get", "List orders, newest first", "ORDERS.READ"),
    ("/orders", "head", "Validator headers for the order list", "ORDERS.READ"),
    ("/orders", "delete", "Delete every order (requires confirm=true)", "ORDERS.DELETE"),
    ("/orders/board", "get", "Kanban columns with counts and cards", "ORDERS.READ"),
    ("/orders/delivered", "get", "Delivered orders history", "ORDERS.READ"),
    ("/orders/changes", "get", "Server-sent order change events", "ORDERS.READ"),
    ("/orders/test-orders", "post", "Generate test orders", "ORDERS.SEED"),
    ("/orders/{order_id}", "get", "Order detail", "ORDERS.READ"),
    ("/orders/{order_id}/status", "patch", "Set order status", "ORDERS.UPDATE"),
]


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def _money() -> Dict[str, Any]:
    return {"type": "string", "pattern": r"^\d+\.\d{2}$"}


def _timestamp(nullable: bool = True) -> Dict[str, Any]:
    return {"type": "string", "format": "date-time", "nullable": nullable}


def _schemas() -> Dict[str, Any]:
    status = {"type": "string", "enum": list(Order.ALL_STATUSES)}
    return {
        "OrderDetail": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "product_id": {"type": "integer"},
                "product_variant_id": {"type": "integer", "nullable": True},
                "quantity": {"type": "integer", "minimum": 1},
                "unit_price": _money(),
                "subtotal": _money(),
                "product": {"type": "object"},
                "ingredients": {"type": "array", "items": {"type": "object"}},
            },
            "required": ["id", "product_id", "quantity", "unit_price", "subtotal"],
        },
        "Order": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "user_uuid": {"type": "string", "nullable": True},
                "status": status,
                "total": _money(),
                "created_at": _timestamp(False),
                "started_at": _timestamp(),
                "ready_at": _timestamp(),
                "delivered_at": _timestamp(),
                "updated_at": _timestamp(),
                "user": {"type": "object", "nullable": True},
                "details": {"type": "array", "items": {"$ref": "#/components/schemas/OrderDetail"}},
            },
            "required": ["id", "status", "total", "created_at", "details"],
            "x-transitions": list(Order.ALL_STATUSES),
        },
        "StatusChange": {
            "type": "object",
            "properties": {"status": status},
            "required": ["status"],
        },
        "Error": {
            "type": "object",
            "properties": {
                "error": {
                    "type": "object",
                    "properties": {
                        "status": {"type": "integer"},
                        "title": {"type": "string"},
                        "detail": {"type": "string"},
                    },
                }
            },
            "required": ["error"],
        },
    }


def _operation(path: str, method: str, summary: str, permission: str) -> Dict[str, Any]:
    op: Dict[str, Any] = {
        "summary": summary,
        "responses": {"200": {"description": "OK"}},
        "x-required-permissions": [permission],
    }
    if "{order_id}" in path:
        op["parameters"] = [{"name": "order_id", "in": "path", "required": True, "schema": {"type": "integer"}}]
        op["responses"]["404"] = {"$ref": "#/components/responses/NotFound"}
    return op


def build_openapi_spec() -> Dict[str, Any]:
    components: Dict[str, Any] = {
        "schemas": _schemas(),
        "responses": {
            "NotFound": {"description": "Not Found"},
            "BadRequest": {"description": "Bad Request"},
            "Unavailable": {"description": "Data platform unavailable"},
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
    }

    paths: Dict[str, Any] = {
        "/auth/login": {"post": {"summary": "Login", "security": [], "responses": {"200": {"description": "JWT issued"}}}},
        "/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
    }
    for path, method, summary, permission in ORDER_OPERATIONS:
        paths.setdefault(path, {})[method] = _operation(path, method, summary, permission)

    orders = paths["/orders"]
    orders["get"]["responses"]["200"]["headers"] = caching_headers()
    orders["get"]["responses"]["304"] = {"description": "Not Modified"}
    orders["head"]["responses"]["200"]["headers"] = caching_headers()
    orders["delete"]["parameters"] = [
        {"name": "confirm", "in": "query", "required": True, "schema": {"type": "boolean"}},
    ]
    orders["delete"]["responses"]["400"] = {"$ref": "#/components/responses/BadRequest"}
    paths["/orders/delivered"]["get"]["parameters"] = [
        {"name": "date", "in": "query", "schema": {"type": "string", "format": "date"}},
    ]
    paths["/orders/changes"]["get"]["responses"]["200"]["content"] = {"text/event-stream": {"schema": {"type": "string"}}}
    status_op = paths["/orders/{order_id}/status"]["patch"]
    status_op["requestBody"] = {
        "required": True,
        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/StatusChange"}}},
    }
    status_op["responses"]["200"]["content"] = {"application/json": {"schema": {"$ref": "#/components/schemas/Order"}}}
    status_op["responses"]["400"] = {"$ref": "#/components/responses/BadRequest"}
    status_op["responses"]["503"] = {"$ref": "#/components/responses/Unavailable"}
    seed_op = paths["/orders/test-orders"]["post"]
    seed_op["requestBody"] = {
        "content": {"application/json": {"schema": {
            "type": "object",
            "properties": {"count": {"type": "integer", "minimum": 1, "maximum": MAX_TEST_ORDERS, "default": 1}},
        }}},
    }
    seed_op["responses"] = {"201": {"description": "Created"}, "400": {"$ref": "#/components/responses/BadRequest"}}
    seed_op["x-required-permissions"] = ["ORDERS.SEED"]

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
            od["operationId"] = f"auto_{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "Cafeteria Back Office API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
