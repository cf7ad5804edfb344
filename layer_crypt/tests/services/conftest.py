from unittest.mock import Mock

import pytest

from layer_crypt.models.image import ImageRecord
from layer_crypt.services.crypt_service import ImageCryptService
from layer_crypt.tests.utils.image_fixtures import MemoryContentStore, multi_platform_image


@pytest.fixture
def content_store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture
def image(content_store: MemoryContentStore) -> ImageRecord:
    record, _, _ = multi_platform_image(content_store)
    return record


@pytest.fixture
def image_store() -> Mock:
    store = Mock()
    store.create.side_effect = lambda record: record
    store.update.side_effect = lambda record: record
    return store


@pytest.fixture
def leases() -> Mock:
    manager = Mock()
    manager.create.return_value = "lease-1"
    return manager


@pytest.fixture
def backend() -> Mock:
    return Mock()


@pytest.fixture
def service(
    content_store: MemoryContentStore, image_store: Mock, leases: Mock, backend: Mock
) -> ImageCryptService:
    return ImageCryptService(content_store, image_store, leases, backend)
