"""Trip booking back end: dynamic batch pricing, seat availability, the wallet
and referral ledger, the booking lifecycle and scheduled maintenance jobs."""

__all__: list[str] = []
