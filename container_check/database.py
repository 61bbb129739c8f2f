# container_check/database.py
import importlib
import logging
import traceback
from typing import Generator

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from container_check.config import DATABASE_URL

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


# ---------------------------------------------------------------------------
# SQLAlchemy Configuration
# ---------------------------------------------------------------------------

def _enable_sqlite_fk(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; MySQL gets a sized pool, SQLite gets FK enforcement."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        eng = create_engine(url, echo=False, **kwargs)
        event.listen(eng, "connect", _enable_sqlite_fk)
        return eng

    kwargs.setdefault("pool_size", 10)
    kwargs.setdefault("max_overflow", 20)
    return create_engine(url, echo=False, pool_pre_ping=True, **kwargs)


engine = build_engine(DATABASE_URL)

Base = declarative_base()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Default Security checklist (seeded when the catalog is empty)
# ---------------------------------------------------------------------------
DEFAULT_CHECKLIST = [
    ("Outside/Undercarriage", "Outer and underside of the container", [
        ("Check structural damage (holes, repairs, dents)", "Look for damage to the container structure"),
        ("Frame/support pillars visible", "Make sure the main frame is in good condition"),
        ("No foreign objects attached", "Make sure nothing suspicious is attached"),
    ]),
    ("Inside/Outside Doors", "Inner and outer doors", [
        ("Locking mechanism secure and working", "Lock opens and closes properly"),
        ("Bolts not loose", "All bolts are tight"),
        ("Hinges working", "Hinges are not damaged or worn"),
    ]),
    ("Right Side", "Right side of the container", [
        ("No suspicious repairs on frame/pillars", "Look for non-standard repairs"),
        ("Inside repairs visible from outside and vice versa", "Cross-check inside and outside"),
    ]),
    ("Left Side", "Left side of the container", [
        ("No suspicious repairs on frame/pillars", None),
        ("Inside repairs visible from outside and vice versa", None),
    ]),
    ("Front Wall", "Front wall", [
        ("Corrugated material to standard", None),
        ("Upper left/right inner blocks working", None),
        ("Vents visible", None),
    ]),
    ("Roof/Ceiling", "Roof and ceiling", [
        ("Support frame visible", None),
        ("Vents not covered", None),
        ("No foreign objects attached", None),
    ]),
    ("Floor", "Container floor", [
        ("Floor flat, not corrugated", None),
        ("No bumps or odd damage", None),
    ]),
    ("Seal Verification", "Container seal verification", [
        ("Seal matches the delivery note", None),
        ("PAS ISO 17712 standard", None),
        ("Not broken or tampered with", None),
    ]),
]


def seed_checklist(db: Session) -> int:
    """
    Insert the default checklist categories/items if the catalog is empty.
    Returns the number of items inserted.
    """
    from container_check.models.checklist_model import ChecklistCategory, ChecklistItem

    existing = db.scalar(select(func.count()).select_from(ChecklistCategory))
    if existing:
        return 0

    inserted = 0
    for cat_order, (name, description, items) in enumerate(DEFAULT_CHECKLIST, start=1):
        category = ChecklistCategory(name=name, description=description, order=cat_order)
        db.add(category)
        for item_order, (item_text, item_desc) in enumerate(items, start=1):
            category.items.append(
                ChecklistItem(item_text=item_text, description=item_desc, order=item_order)
            )
            inserted += 1
    db.commit()
    logger.info("Checklist seeding complete. Inserted %d items.", inserted)
    return inserted


# ---------------------------------------------------------------------------
# init_db: import models, create tables, seed catalog
# ---------------------------------------------------------------------------
MODEL_MODULES = [
    # keep these in sync with files inside container_check/models
    "users_model",
    "checklist_model",
    "container_model",
    "security_check_model",
    "checker_data_model",
    "photo_model",
    "inspector_name_model",
]


def import_models():
    for mod in MODEL_MODULES:
        importlib.import_module(f"container_check.models.{mod}")
        logger.debug("Imported model module: container_check.models.%s", mod)


def init_db(bind: Engine = None):
    bind = bind or engine
    import_models()

    try:
        Base.metadata.create_all(bind=bind)
        logger.info("Base.metadata.create_all() executed.")
    except Exception:
        logger.error("Base.metadata.create_all failed:\n%s", traceback.format_exc())
        raise

    db = Session(bind=bind)
    try:
        seed_checklist(db)
    finally:
        db.close()
