import csv
import io

from directory_app.listings.models import IMPORT_FIELDS

TEMPLATE_FILENAME = "bulk_import_template.csv"

EXAMPLE_ROW = {
    "business_name": "Acme RV Rentals",
    "category": "RV Rental",
    "description": "Premium RV rentals for your next adventure",
    "address": "123 Main Street",
    "city": "Austin",
    "state": "TX",
    "zip": "78701",
    "phone": "(512) 555-0123",
    "email": "info@acmervrentals.com",
    "website": "https://acmervrentals.com",
    "logo_url": "https://example.com/logo.png",
    "hours_json": (
        '{"monday":{"open":"09:00","close":"17:00"},'
        '"tuesday":{"open":"09:00","close":"17:00"}}'
    ),
    "services_json": (
        '[{"name":"Class A Motorhome","price":250,"unit":"per day"},'
        '{"name":"Travel Trailer","price":150,"unit":"per day"}]'
    ),
}


def build_template_csv() -> str:
    """Header row plus one example row, quoted so the JSON columns survive parsing."""
    buffer = io.StringIO()
    buffer.write(",".join(IMPORT_FIELDS) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([EXAMPLE_ROW[name] for name in IMPORT_FIELDS])
    return buffer.getvalue()
