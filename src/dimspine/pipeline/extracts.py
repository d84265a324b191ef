"""
CSV extract reader.

An input directory holds one CSV per source entity:

    customers.csv   customerid, customername, country, signupdate
    products.csv    stockcode, description, unitprice, category, brand
    sales.csv       invoiceid, stockcode, description, customerid, date,
                    quantity, unitprice, totalamount
    date.csv        date, year, month, day, weekday

Header names are matched case-insensitively after trimming. Extra columns
are ignored; a missing file or a missing required column is fatal.
Values are passed through as untyped text.
"""

from __future__ import annotations

import csv
import hashlib
from pathlib import Path

from dimspine.core.errors import ExtractError
from dimspine.core.logging import get_logger
from dimspine.domain.models import SOURCE_FIELDS, Entity, RawExtracts, RawRecord, freeze_record

logger = get_logger(__name__)

EXTRACT_FILES: dict[Entity, str] = {
    Entity.CUSTOMER: "customers.csv",
    Entity.PRODUCT: "products.csv",
    Entity.SALES: "sales.csv",
    Entity.CALENDAR: "date.csv",
}


def _content_hash(path: Path) -> str:
    sha = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(8192):
            sha.update(chunk)
    return sha.hexdigest()


def read_extract(path: str | Path, entity: Entity, encoding: str = "utf-8-sig") -> tuple[RawRecord, ...]:
    """Read one extract file into frozen raw records."""
    path = Path(path)
    if not path.is_file():
        raise ExtractError(f"Extract file not found: {path}", entity=entity.value)

    try:
        with open(path, newline="", encoding=encoding) as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None:
                raise ExtractError(f"Extract file is empty: {path}", entity=entity.value)

            columns = [name.strip().lower() for name in header]
            missing = [name for name in SOURCE_FIELDS[entity] if name not in columns]
            if missing:
                raise ExtractError(
                    f"{path.name} is missing required columns: {', '.join(missing)}",
                    entity=entity.value,
                    missing_columns=missing,
                )

            records = []
            for row in reader:
                if not row:
                    continue
                records.append(freeze_record(entity, dict(zip(columns, row))))
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise ExtractError(f"Cannot read extract {path}: {exc}", entity=entity.value, cause=exc) from exc

    logger.info("extract.read", entity=entity.value, path=str(path), rows=len(records), sha256=_content_hash(path))
    return tuple(records)


def read_extracts(directory: str | Path) -> RawExtracts:
    """Read all four extracts from ``directory``."""
    directory = Path(directory)
    if not directory.is_dir():
        raise ExtractError(f"Input directory not found: {directory}")

    extracts = {entity: read_extract(directory / filename, entity) for entity, filename in EXTRACT_FILES.items()}
    return RawExtracts(
        customers=extracts[Entity.CUSTOMER],
        products=extracts[Entity.PRODUCT],
        sales=extracts[Entity.SALES],
        calendar=extracts[Entity.CALENDAR],
    )
