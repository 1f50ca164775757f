import pytest

from fakes import FakeEmbeddingProvider, InMemoryStore, MemoryFileStorage
from licenseprep.services.pipeline.embedding import Embedder
from licenseprep.services.throttle import NoThrottle


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def files():
    return MemoryFileStorage()


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def embedder(store, embedding_provider):
    return Embedder(store, embedding_provider, batch_size=100, throttle=NoThrottle())
