"""Shared payload keys for resource candidate records."""

from __future__ import annotations

# Candidate record keys (the shape handed to presentation/platform layers)
K_URL = "url"
K_FILENAME = "filename"
K_EXTENSION = "extension"
K_IS_INFERRED_DOWNLOAD = "isInferredDownload"
K_ENRICHED = "enriched"
K_SIZE = "size"
K_FINAL_URL = "finalUrl"
K_SELECTED = "selected"
