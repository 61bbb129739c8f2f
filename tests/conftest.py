"""
Shared fixtures: an in-memory SQLite database with the default checklist
seeded, one user per role, a temporary on-disk blob store and PNG bytes.
"""
import io
import os
import tempfile
from datetime import datetime

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="container-check-uploads-"))

import pytest
from PIL import Image
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from container_check import config
from container_check.database import build_engine, init_db
from container_check.models import ResponseTarget, User, VehicleInspectionCategory, VehicleInspectionItem
from container_check.routers.auth_router import hash_password
from container_check.schemas.inspection import ChecklistAnswer, ContainerFields
from container_check.services import catalog_service
from container_check.services.blob_store import BlobStoreError, LocalBlobStore
from container_check.services.dashboard_cache import dashboard_cache
from container_check.services.inspection_service import create_inspection
from container_check.services.photo_service import PhotoFile
from container_check.services.session import Role, UserSession


def png_bytes(color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, "PNG")
    return buf.getvalue()


def make_photos(n: int):
    return [PhotoFile(filename=f"photo{i}.png", data=png_bytes()) for i in range(n)]


class RecordingStore(LocalBlobStore):
    """Local store that remembers every put/remove."""

    def __init__(self, root_dir, public_base_url="http://testserver"):
        super().__init__(root_dir, public_base_url)
        self.put_paths = []
        self.removed_paths = []

    def put(self, bucket, path, data, content_type):
        url = super().put(bucket, path, data, content_type)
        self.put_paths.append(path)
        return url

    def remove(self, bucket, paths):
        paths = list(paths)
        self.removed_paths.extend(paths)
        super().remove(bucket, paths)

    def exists(self, path) -> bool:
        return os.path.exists(self._fs_path(config.PHOTO_BUCKET, path))


class FailingStore(RecordingStore):
    """Accepts ``succeed`` uploads, then fails every put."""

    def __init__(self, root_dir, succeed=0, fail_remove=False):
        super().__init__(root_dir)
        self.succeed = succeed
        self.fail_remove = fail_remove
        self.attempts = 0

    def put(self, bucket, path, data, content_type):
        self.attempts += 1
        if len(self.put_paths) >= self.succeed:
            raise BlobStoreError("simulated outage")
        return super().put(bucket, path, data, content_type)

    def remove(self, bucket, paths):
        if self.fail_remove:
            self.removed_paths.extend(paths)
            raise BlobStoreError("simulated cleanup failure")
        super().remove(bucket, paths)


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_BACKOFF_SECONDS", 0)
    dashboard_cache.clear()
    yield
    dashboard_cache.clear()


@pytest.fixture
def engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def vehicle_items(db):
    category = VehicleInspectionCategory(name="Truck", description="Truck condition", order=1)
    category.items.append(VehicleInspectionItem(item_text="Tyres in good condition", order=1))
    category.items.append(VehicleInspectionItem(item_text="Lights working", order=2))
    db.add(category)
    db.commit()
    return catalog_service.list_active_vehicle_items(db)


def _add_user(db, name, role):
    pwd_hash, salt = hash_password("secret123")
    user = User(name=name, email=f"{name.lower()}@example.com", role=role.value, password_hash=pwd_hash, password_salt=salt)
    db.add(user)
    db.commit()
    return UserSession(user_id=user.id, name=user.name, role=role)


@pytest.fixture
def users(db):
    return {
        "security": _add_user(db, "Sekar", Role.SECURITY),
        "security2": _add_user(db, "Rudi", Role.SECURITY),
        "checker": _add_user(db, "Citra", Role.CHECKER),
        "checker2": _add_user(db, "Dewi", Role.CHECKER),
        "admin": _add_user(db, "Adi", Role.ADMIN),
    }


@pytest.fixture
def store(tmp_path):
    return RecordingStore(tmp_path / "blobs")


@pytest.fixture
def checklist_ids(db):
    return [i.id for i in catalog_service.list_active_checklist_items(db)]


def all_checked(item_ids, vehicle_ids=()):
    answers = {ResponseTarget.checklist(i): ChecklistAnswer(checked=True) for i in item_ids}
    answers.update({ResponseTarget.vehicle(i): ChecklistAnswer(checked=True) for i in vehicle_ids})
    return answers


def container_fields(container_no="TCLU1234567", seal_no="SL-0001", **overrides):
    values = dict(
        container_no=container_no,
        company_name="PT Samudera",
        seal_no=seal_no,
        plate_no="B 1234 XYZ",
        inspection_date=datetime(2026, 10, 17, 8, 0),
    )
    values.update(overrides)
    return ContainerFields(**values)


@pytest.fixture
def make_inspection(db, users, store, checklist_ids):
    """Create a fully checked inspection as the first Security user."""

    def _make(container_no="TCLU1234567", seal_no="SL-0001", photos=3, session=None, **overrides):
        return create_inspection(
            db,
            session or users["security"],
            store,
            container_fields(container_no, seal_no, **overrides),
            "Budi",
            all_checked(checklist_ids),
            make_photos(photos),
        )

    return _make
