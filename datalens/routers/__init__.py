"""
API Routers package
"""
from datalens.routers.datasets import router as datasets_router
from datalens.routers.analysis import router as analysis_router

__all__ = [
    "datasets_router",
    "analysis_router",
]
