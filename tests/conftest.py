"""
Shared pytest fixtures: in-memory SQLite, fake rasterizer/OCR engine,
and a FastAPI TestClient.
"""
import os
import tempfile
import threading
import time
import uuid
from io import BytesIO
from pathlib import Path

# Settings are read at import time; keep the app away from real tools and ./data
_TMP = tempfile.mkdtemp(prefix="receiptflow-tests-")
os.environ.setdefault("VERIFY_EXTERNAL_TOOLS", "false")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP}/app.db")
os.environ.setdefault("DATA_DIR", _TMP)
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP, "uploads"))
os.environ.setdefault("SCRATCH_DIR", os.path.join(_TMP, "temp_images"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from pypdf import PdfWriter  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from receiptflow.database import Base  # noqa: E402
from receiptflow.main import app  # noqa: E402
from receiptflow.models import ReceiptModel, SourceFileModel  # noqa: E402,F401
from receiptflow.pipeline.coordinator import PipelineCoordinator  # noqa: E402
from receiptflow.pipeline.errors import RasterizationError  # noqa: E402
from receiptflow.routers.receipts import get_coordinator, get_upload_dir  # noqa: E402
from receiptflow.store import ReceiptStore, get_store  # noqa: E402

SAMPLE_RECEIPT_TEXT = (
    "Grocery Store A\n"
    "Receipt #123\n"
    "123 Main St, Springfield\n"
    "05/24/2024 08:15 AM\n"
    "Milk            3.50\n"
    "Bread           2.25\n"
    "TOTAL: $45.75\n"
    "Thank you for shopping!\n"
)

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)


def build_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


class FakeRasterizer:
    """Writes a throwaway PNG per call; can be told to fail the next N calls."""

    def __init__(self, scratch_dir: Path):
        self.scratch_dir = scratch_dir
        self.calls = 0
        self.failures = 0
        self.produced: list[Path] = []
        self._lock = threading.Lock()

    def rasterize(self, pdf_path):
        with self._lock:
            self.calls += 1
            if self.failures:
                self.failures -= 1
                raise RasterizationError(
                    "pdftoppm exited with status 1", diagnostic="Syntax Error: Couldn't read xref table"
                )
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        path = self.scratch_dir / f"{uuid.uuid4().hex}.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n")
        self.produced.append(path)
        return path


class FakeOcr:
    """Engine factory double; counts engines opened/closed and recognitions."""

    def __init__(self):
        self.text = SAMPLE_RECEIPT_TEXT
        self.error = None
        self.delay = 0.0
        self.opened = 0
        self.closed = 0
        self.recognized = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.opened += 1
        return _FakeEngine(self)


class _FakeEngine:
    def __init__(self, owner: FakeOcr):
        self.owner = owner

    def recognize(self, image_path):
        assert Path(image_path).is_file()
        if self.owner.delay:
            time.sleep(self.owner.delay)
        with self.owner._lock:
            self.owner.recognized += 1
        if self.owner.error is not None:
            raise self.owner.error
        return self.owner.text

    def close(self):
        with self.owner._lock:
            self.owner.closed += 1


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def make_pdf():
    return build_pdf


@pytest.fixture()
def sample_text():
    return SAMPLE_RECEIPT_TEXT


@pytest.fixture()
def store():
    return ReceiptStore(_Session)


@pytest.fixture()
def rasterizer(tmp_path):
    return FakeRasterizer(tmp_path / "scratch")


@pytest.fixture()
def ocr():
    return FakeOcr()


@pytest.fixture()
def coordinator(store, rasterizer, ocr):
    coord = PipelineCoordinator(store, rasterizer, ocr, max_workers=4)
    yield coord
    coord.shutdown()


@pytest.fixture()
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture()
def add_source(store, upload_dir):
    """Write bytes to the upload dir and register them as a source file."""

    def _add(content: bytes = None, name: str = "receipt.pdf"):
        data = build_pdf() if content is None else content
        path = upload_dir / f"{uuid.uuid4().hex}.pdf"
        path.write_bytes(data)
        return store.create_source_file(file_name=name, file_path=str(path))

    return _add


@pytest.fixture()
def client(store, coordinator, upload_dir):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_upload_dir] = lambda: upload_dir
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
