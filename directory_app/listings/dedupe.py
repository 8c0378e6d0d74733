import hashlib

from directory_app.listings.schemas import ImportRow


def full_address(row: ImportRow) -> str:
    """The address string stored on a listing: "street, city, STATE zip"."""
    return f"{row.address}, {row.city}, {row.state} {row.zip}"


def normalize(value: str | None) -> str:
    return " ".join((value or "").lower().split())


def addresses_match(stored: str | None, candidate: str) -> bool:
    """Bidirectional substring containment on lower-cased addresses.

    An empty stored address is contained in every candidate, so a
    same-name listing without an address counts as a match.
    """
    stored_norm = (stored or "").lower().strip()
    candidate_norm = candidate.lower().strip()
    return candidate_norm in stored_norm or stored_norm in candidate_norm


def dedupe_key(business_name: str, address: str) -> str:
    raw = f"{normalize(business_name)}|{normalize(address)}"
    return hashlib.sha256(raw.encode()).hexdigest()[:32]
