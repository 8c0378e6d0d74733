"""Builders for import rows and canned logo-host responses."""

import httpx

from directory_app.config import settings
from directory_app.listings.schemas import ImportRow

ADMIN = settings.auth_username
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


def make_row(**overrides: str) -> ImportRow:
    fields = {
        "business_name": "Acme RV Rentals",
        "category": "RV Rental",
        "description": "Premium RV rentals",
        "address": "123 Main Street",
        "city": "Austin",
        "state": "TX",
        "zip": "78701",
        "phone": "(512) 555-0123",
        "email": "info@acme.example",
        "website": "https://acme.example",
    }
    fields.update(overrides)
    return ImportRow(**fields)


def png_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
