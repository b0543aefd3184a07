"""
FastAPI routers for the video worker.
"""

from storyreel.routers import health, videos

__all__ = ["health", "videos"]
