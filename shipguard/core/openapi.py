"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- A shared ``TooManyRequests`` response documenting the 429 body and the
  ``X-RateLimit-*`` / ``Retry-After`` headers
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMITED_PATHS = ("/health/diagnostics", "/health/diagnostics/{profile}")

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded for this client.",
    "headers": {
        "X-RateLimit-Limit": {"schema": {"type": "integer"}},
        "X-RateLimit-Remaining": {"schema": {"type": "integer"}},
        "X-RateLimit-Reset": {
            "schema": {"type": "integer"},
            "description": "UNIX epoch seconds when the window resets.",
        },
        "Retry-After": {"schema": {"type": "integer"}},
    },
    "content": {
        "application/json": {
            "schema": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": False},
                    "error": {"type": "string"},
                    "retryAfter": {"type": "integer"},
                },
            }
        }
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        responses = components.setdefault("responses", {})
        responses.setdefault("TooManyRequests", _TOO_MANY_REQUESTS)

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Health",
                "description": "Liveness checks and cache/rate limit diagnostics.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path in RATE_LIMITED_PATHS:
            for method_obj in paths.get(path, {}).values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {})["429"] = {
                        "$ref": "#/components/responses/TooManyRequests"
                    }

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
