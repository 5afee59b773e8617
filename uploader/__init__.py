"""Uploader package: chat leases, cancellable relay and progress reporting."""

from .coordinator import coordinator, TransferCoordinator, ChatLease, CancelOutcome  # noqa: F401
from .manager import run_transfer, register_handlers  # noqa: F401
