"""
commsgraph - Communications graph over forensic case evidence.

This package provides functionality to:
- Deduplicate accounts (phone numbers, email addresses, app handles) found in evidence
- Link each account to the artifacts it was found in
- Record and query who communicated with whom, per device
"""

__version__ = "0.1.0"

from commsgraph.config import get_config, Config
from commsgraph.database import CaseDatabase

__all__ = [
    "get_config",
    "Config",
    "CaseDatabase",
]
