"""
Error taxonomy for the donation ledger.

Validation errors are raised before any write. Store errors wrap every I/O
failure of the backing database; the orchestrator treats them as fatal only
on the donation write itself.
"""


class LedgerError(Exception):
    """Base class for donation ledger errors"""
    pass


class DonationValidationError(LedgerError):
    """Donation input rejected before anything was persisted"""
    pass


class StoreError(LedgerError):
    """Backing store read or write failed"""
    pass


class UnauthenticatedError(LedgerError):
    """Operation requires a signed-in user"""
    pass


class DonationNotFoundError(LedgerError):
    """Donation does not exist or belongs to another user"""

    def __init__(self, donation_id: str):
        super().__init__(f"Donation {donation_id} not found")
        self.donation_id = donation_id
