"""
Session Scribe: transcripts and epic moments for recorded tabletop sessions.

- audio: segment, shrink and transcribe recordings of any length
- client: submit / poll / fetch client for asynchronous generation jobs
- campaign: campaign storage and the analysis service built on both
"""

__version__ = "1.0.0"

from .cancellation import CancellationToken
from .errors import SessionScribeError

__all__ = ["CancellationToken", "SessionScribeError", "__version__"]
