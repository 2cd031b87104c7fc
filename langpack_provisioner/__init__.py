"""Language-pack provisioning for Windows hosts (manifest-driven, resumable).

Core design goals:
- One manifest drives the whole batch, in the order given
- Idempotent fetch (file present) and install (package registered) checks
- Atomic downloads; a partial file never counts as present
- One bad artifact never blocks the others
- Centralized, append-only logging
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
