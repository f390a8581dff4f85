"""
Semantic type aliases for meshprobe.

These aliases keep signatures self-documenting: a ``DurationSeconds`` reads
differently from an arbitrary ``float`` even though the runtime type is the
same.
"""

from collections.abc import Mapping
from typing import Any

# Time types
type DurationSeconds = float

# Attempt bookkeeping
type AttemptCount = int
type AttemptBudget = int
type SuccessStreak = int

# Stage and environment types
type StageName = str
type StagePosition = int
type HandleName = str
type Handle = Any
type HandleUpdates = Mapping[HandleName, Handle]
type SuiteLabel = str

# Configuration store types
type ScopeName = str
type ConfigDocument = str

# Network and data-plane types
type HostName = str
type UrlPath = str
type UrlString = str
type HttpStatus = int
type ResponseBody = str
type HeaderMap = Mapping[str, str]

# Diagnostics
type ErrorMessage = str
