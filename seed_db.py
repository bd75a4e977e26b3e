import sys

from spotmap.core.config import settings
from spotmap.logging import configure_logging
from spotmap.services.spot_store import build_engine, create_schema, import_spots, load_dataset

def seed(path: str):
    engine = build_engine(settings.DATABASE_URL)
    create_schema(engine)
    written = import_spots(engine, load_dataset(path))
    print(f"Imported {written} spots into {settings.DATABASE_URL}")
    engine.dispose()

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python seed_db.py <dataset.json>")
        sys.exit(2)
    configure_logging()
    seed(sys.argv[1])
