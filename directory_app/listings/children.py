"""Schemas for the hours_json and services_json payloads.

Both sides of the import use this module: the client validator reports
every structural problem up front, while the import service turns the
same payloads into child rows and skips entries it cannot use.
"""

import json
from typing import Any

import structlog

from directory_app.listings.models import DAY_INDEX, DEFAULT_PRICE_UNIT, HoursEntry, ServiceEntry

logger = structlog.get_logger()


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int | float):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _text_or_none(value: Any) -> str | None:
    """Scalar JSON value as column text; nested objects and arrays raise ValueError."""
    if value is None or value == "":
        return None
    if isinstance(value, dict | list):
        raise ValueError(f"expected a scalar, got {type(value).__name__}")
    return str(value)


def hours_errors(hours: Any) -> list[str]:
    """Structural problems in a decoded hours_json payload."""
    if not isinstance(hours, dict):
        return ["hours_json must be an object keyed by day name"]

    errors: list[str] = []
    for day, times in hours.items():
        if str(day).lower() not in DAY_INDEX:
            errors.append(f"hours_json: unknown day '{day}'")
            continue
        if not isinstance(times, dict):
            errors.append(f"hours_json: '{day}' must be an object")
            continue
        for key in ("open", "close"):
            value = times.get(key)
            if value is not None and not isinstance(value, str):
                errors.append(f"hours_json: '{day}.{key}' must be a string")
        closed = times.get("closed")
        if closed is not None and not isinstance(closed, bool):
            errors.append(f"hours_json: '{day}.closed' must be true or false")
    return errors


def services_errors(services: Any) -> list[str]:
    """Structural problems in a decoded services_json payload."""
    if not isinstance(services, list):
        return ["services_json must be an array"]

    errors: list[str] = []
    for index, service in enumerate(services, start=1):
        if not isinstance(service, dict):
            errors.append(f"services_json: entry {index} must be an object")
            continue
        name = service.get("name") or service.get("service_name")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"services_json: entry {index} is missing a name")
        price = service.get("price")
        if price not in (None, "") and not _is_number(price):
            errors.append(f"services_json: entry {index} has a non-numeric price")
    return errors


def build_hours(raw: str, business_name: str) -> list[HoursEntry]:
    """Decode hours_json into child rows, skipping malformed entries."""
    try:
        hours = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("hours_unparsable", business_name=business_name, error=str(exc))
        return []
    if not isinstance(hours, dict):
        logger.warning("hours_not_object", business_name=business_name)
        return []

    entries: list[HoursEntry] = []
    for day, times in hours.items():
        day_index = DAY_INDEX.get(str(day).lower())
        if day_index is None or not isinstance(times, dict):
            logger.warning("hours_entry_skipped", business_name=business_name, day=day)
            continue
        try:
            entry = HoursEntry(
                day_of_week=day_index,
                open_time=_text_or_none(times.get("open")),
                close_time=_text_or_none(times.get("close")),
                is_closed=bool(times.get("closed") or False),
            )
        except ValueError as exc:
            logger.warning(
                "hours_entry_skipped", business_name=business_name, day=day, error=str(exc)
            )
            continue
        entries.append(entry)
    return entries


def build_services(raw: str, business_name: str) -> list[ServiceEntry]:
    """Decode services_json into child rows, skipping malformed entries."""
    try:
        services = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("services_unparsable", business_name=business_name, error=str(exc))
        return []
    if not isinstance(services, list):
        logger.warning("services_not_array", business_name=business_name)
        return []

    entries: list[ServiceEntry] = []
    for index, service in enumerate(services):
        if not isinstance(service, dict):
            logger.warning("service_entry_skipped", business_name=business_name, index=index)
            continue
        name = service.get("name") or service.get("service_name")
        if not name or isinstance(name, dict | list):
            logger.warning("service_entry_skipped", business_name=business_name, index=index)
            continue
        try:
            description = _text_or_none(service.get("description"))
            unit = _text_or_none(service.get("unit") or service.get("price_unit"))
        except ValueError as exc:
            logger.warning(
                "service_entry_skipped", business_name=business_name, index=index, error=str(exc)
            )
            continue

        price_raw = service.get("price")
        price = float(price_raw) if price_raw and _is_number(price_raw) else None
        if price_raw and price is None:
            logger.warning(
                "service_price_ignored", business_name=business_name, index=index, price=price_raw
            )

        entries.append(
            ServiceEntry(
                service_name=str(name),
                description=description,
                price=price,
                price_unit=unit or DEFAULT_PRICE_UNIT,
                display_order=index,
            )
        )
    return entries
