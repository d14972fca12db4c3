"""On-disk receipt and run-artifact storage."""

from dil_core.persistence.receipts import (
    ReceiptStore,
    ReceiptStoreError,
    RunWorkspace,
    generate_run_id,
)

__all__ = ["ReceiptStore", "ReceiptStoreError", "RunWorkspace", "generate_run_id"]
