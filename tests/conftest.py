"""Test configuration for pytest."""

import logging
import os
import pytest
from PIL import Image

from tests.helpers.image_factory import block_pattern, encode, inverted


@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests to be minimal."""
    os.environ['CRATEGALLERY_LOG_LEVEL'] = 'WARNING'
    logging.getLogger().setLevel(logging.WARNING)

    # Per-image hashing failures are expected in several tests
    for logger_name in ['crategallery.dedup.model', 'crategallery.review.decisions']:
        logging.getLogger(logger_name).setLevel(logging.ERROR)


@pytest.fixture
def pattern_png() -> bytes:
    return encode(block_pattern())


@pytest.fixture
def pattern_half_size_jpeg() -> bytes:
    img = block_pattern()
    small = img.resize((img.width // 2, img.height // 2), Image.Resampling.NEAREST)
    return encode(small, "JPEG", quality=80)


@pytest.fixture
def inverted_png() -> bytes:
    return encode(inverted(block_pattern()))
