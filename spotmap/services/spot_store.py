"""
Spot record store: table definition, engine construction and dataset import.

The query path only reads from the ``spots`` table. Import helpers exist so a
fresh deployment (or a test) can be populated from the public JSON record
format, where list-valued details are stored as JSON-encoded text columns.
"""
import json
from typing import Any, Iterable, List, Mapping

import structlog
from sqlalchemy import (
    Column,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger(__name__)

metadata = MetaData()

spots_table = Table(
    "spots",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String, nullable=False),
    Column("name", String, nullable=True),
    Column("lat", Float, nullable=True),
    Column("lon", Float, nullable=True),
    Column("address", String, nullable=True),
    Column("equipment", Text, nullable=True),
    Column("disciplines", Text, nullable=True),
    Column("description", Text, nullable=True),
    Column("features_type", String, nullable=True),
    Column("images", Text, nullable=True),
    Column("rating", Integer, nullable=True),
    Index("idx_lat_lon", "lat", "lon"),
    Index("idx_title", "title"),
)


def build_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, connect_args=connect_args)
    return create_engine(url, pool_pre_ping=True)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)


def count_spots(engine: Engine) -> int:
    with engine.connect() as conn:
        return int(conn.execute(select(func.count()).select_from(spots_table)).scalar_one())


def _encode_list(values: Any):
    if values is None:
        return None
    return json.dumps(list(values))


def record_to_row(record: Mapping[str, Any]) -> dict:
    """Flatten a public-format record (nested ``details``) into a table row."""
    details = record.get("details") or {}
    features = details.get("features") or {}
    return {
        "id": int(record["id"]),
        "title": record["title"],
        "name": record.get("name"),
        "lat": record.get("lat"),
        "lon": record.get("lon"),
        "address": record.get("address"),
        "equipment": _encode_list(details.get("equipment")),
        "disciplines": _encode_list(details.get("disciplines")),
        "description": details.get("description"),
        "features_type": features.get("type"),
        "images": _encode_list(details.get("images")),
        "rating": details.get("rating"),
    }


def import_spots(engine: Engine, records: Iterable[Mapping[str, Any]]) -> int:
    """Insert records in one transaction. Returns the number of rows written."""
    rows: List[dict] = [record_to_row(r) for r in records]
    if not rows:
        return 0
    with engine.begin() as conn:
        conn.execute(insert(spots_table), rows)
    logger.info("spots_imported", count=len(rows))
    return len(rows)


def load_dataset(path: str) -> List[dict]:
    """Read a dataset file: either a list of records or ``{"spots": [...]}``."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("spots", [])
    if not isinstance(data, list):
        raise ValueError(f"Unsupported dataset layout in {path}")
    return data


def seed_if_empty(engine: Engine, path: str) -> int:
    """Import ``path`` when the table holds no rows yet."""
    if count_spots(engine) > 0:
        return 0
    try:
        records = load_dataset(path)
    except FileNotFoundError:
        logger.error("spots_seed_file_missing", path=path)
        return 0
    return import_spots(engine, records)
