"""HTTP surface for operating the retirement controller."""

from seppuku.gateway.router import RetirementStatusResponse, create_retirement_router

__all__ = ["RetirementStatusResponse", "create_retirement_router"]
