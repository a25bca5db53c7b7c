"""
API routers package
"""

from contractlens.routers.extractions import router as extractions_router

__all__ = ["extractions_router"]
