"""Root conftest: shared test configuration."""

import os

# Ensure tests never talk to a real data API
os.environ.setdefault("FORMBUILDER_API_BASE_URL", "http://test/api")
os.environ.setdefault("FORMBUILDER_API_TOKEN", "test-token")
