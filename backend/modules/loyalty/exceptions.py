# backend/modules/loyalty/exceptions.py

"""
Custom exceptions for the loyalty module.

Each redemption precondition fails with its own error type so that the
caller can tell the customer exactly why a reward was refused.
"""

from typing import Optional

from fastapi import status

from core.error_handling import APIError


class InsufficientPointsError(APIError):
    """Raised when a customer's balance does not cover a debit"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "INSUFFICIENT_POINTS"

    def __init__(self, required: int, available: Optional[int] = None, customer_id: Optional[int] = None):
        if available is None:
            message = f"Insufficient points. Required: {required}"
        else:
            message = f"Insufficient points. Required: {required}, Available: {available}"
        super().__init__(
            message=message,
            details={
                "required_points": required,
                "available_points": available,
                "customer_id": customer_id,
            },
        )


class TierTooLowError(APIError):
    """Raised when a reward requires a higher tier than the customer holds"""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "TIER_TOO_LOW"

    def __init__(self, required_tier: str, current_tier: str):
        super().__init__(
            message=f"This reward requires {required_tier} tier or higher",
            details={"required_tier": required_tier, "current_tier": current_tier},
        )


class SoldOutError(APIError):
    """Raised when a capped reward has no units left"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "SOLD_OUT"

    def __init__(self, reward_id: int, total_available: Optional[int] = None):
        super().__init__(
            message="This reward is no longer available",
            details={"reward_id": reward_id, "total_available": total_available},
        )
