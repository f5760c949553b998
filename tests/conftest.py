import pytest

from galleria import MemoryGalleries


@pytest.fixture(autouse=True)
def clear_memory_galleries():
    MemoryGalleries.clear()
    yield
    MemoryGalleries.clear()
