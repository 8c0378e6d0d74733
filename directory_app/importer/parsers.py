"""Turn raw CSV or JSON text into ImportRows.

The CSV reader is deliberately small: one record per line, `"` toggles
quoting (a doubled `""` inside quotes is a literal quote) and commas only
split fields outside quotes.
"""

import json

from pydantic import ValidationError as PydanticValidationError

from directory_app.exceptions import ParseError
from directory_app.listings.models import IMPORT_FIELDS
from directory_app.listings.schemas import ImportRow


def decode_text(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        if raw.startswith(b"\xef\xbb\xbf"):
            raw = raw[3:]
        return raw.decode("utf-8", errors="replace")
    if raw.startswith("\ufeff"):
        return raw[1:]
    return raw


def split_line(line: str, line_number: int) -> list[str]:
    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    chars = iter(enumerate(line))

    for index, char in chars:
        if char == '"':
            if in_quotes and line[index + 1 : index + 2] == '"':
                current.append('"')
                next(chars)
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    if in_quotes:
        raise ParseError(f"Unterminated quoted field on line {line_number}")
    values.append("".join(current).strip())
    return values


def parse_delimited(raw: str | bytes) -> list[ImportRow]:
    text = decode_text(raw)
    lines = [
        (number, line.rstrip("\r"))
        for number, line in enumerate(text.split("\n"), start=1)
        if line.strip()
    ]
    if not lines:
        raise ParseError("CSV has no header row")

    header_number, header_line = lines[0]
    headers = [h.strip().strip('"').strip().lower() for h in split_line(header_line, header_number)]

    rows: list[ImportRow] = []
    for number, line in lines[1:]:
        values = split_line(line, number)
        record = {
            header: values[index] if index < len(values) else ""
            for index, header in enumerate(headers)
            if header in IMPORT_FIELDS
        }
        rows.append(ImportRow(**{field: record.get(field, "") for field in IMPORT_FIELDS}))
    return rows


def parse_json(raw: str | bytes) -> list[ImportRow]:
    text = decode_text(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(
            f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"
        ) from exc

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ParseError("JSON input must be an object or an array of objects")

    rows: list[ImportRow] = []
    for index, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            raise ParseError(f"JSON item {index} is not an object")
        try:
            rows.append(ImportRow.model_validate(item))
        except PydanticValidationError as exc:
            raise ParseError(f"JSON item {index} could not be read: {exc}") from exc
    return rows
