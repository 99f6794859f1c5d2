import pytest
import sqlite3
from pathlib import Path
from image_kraker.database.schema import init_schema
from image_kraker.database.ops import DBOperations
from image_kraker.exceptions import DownloadError
from image_kraker.metadata.store import MetadataStore
from image_kraker.models import OptimizationResult

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)

@pytest.fixture
def store(db_ops):
    return MetadataStore(db_ops)


class FakeKrakenClient:
    """
    Scripted stand-in for KrakenClient.
    Results are keyed by file name; artifacts are served from memory by URL.
    Files without a scripted result come back as 'already optimal'.
    """
    def __init__(self):
        self.results = {}
        self.artifacts = {}
        self.uploads = []
        self.downloads = []

    def shrink(self, path: Path, content: bytes):
        """Scripts a successful krake of `path` into `content`."""
        url = f"https://dl.kraken.io/test/{path.name}"
        original = path.stat().st_size
        self.artifacts[url] = content
        self.results[path.name] = OptimizationResult(
            success=True,
            original_size=original,
            optimized_size=len(content),
            saved_bytes=original - len(content),
            artifact_url=url,
        )
        return url

    def optimize(self, path: Path, lossy: bool) -> OptimizationResult:
        self.uploads.append(path)
        if path.name in self.results:
            return self.results[path.name]
        size = path.stat().st_size
        return OptimizationResult(success=True, original_size=size, optimized_size=size, saved_bytes=0)

    def download(self, url: str, destination: Path):
        self.downloads.append(url)
        if url not in self.artifacts:
            raise DownloadError(f"404 Client Error for url: {url}")
        destination.write_bytes(self.artifacts[url])

@pytest.fixture
def fake_client():
    return FakeKrakenClient()
