import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Make the repo root importable so `s3presign.*` resolves without installing.
REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from s3presign.providers.factory import ParentConfig  # noqa: E402

FROZEN_NOW = datetime(2024, 3, 15, 6, 30, 45, tzinfo=timezone.utc)
FIXED_NONCE = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def frozen_now():
    return FROZEN_NOW


@pytest.fixture
def clock():
    return lambda: FROZEN_NOW


@pytest.fixture
def nonce():
    return lambda: FIXED_NONCE


@pytest.fixture
def parent():
    return ParentConfig(
        endpoint="https://s3.example.com",
        bucket="media",
        bucket_lookup="path",
        prefix="tenant-1",
        access_key="AKIDEXAMPLE",
        secret_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        region="us-east-1",
    )
