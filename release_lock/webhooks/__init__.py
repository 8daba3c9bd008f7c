"""GitHub webhook receiver."""

from .app import build_coordinator, create_app
from .security import generate_signature, verify_signature

__all__ = ["build_coordinator", "create_app", "generate_signature", "verify_signature"]
