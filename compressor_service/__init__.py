"""
Batch image compression service package.

Exposes reusable primitives for discovering source images, transcoding them,
storing the results, and serving the FastAPI trigger application.
"""

__version__ = "0.1.0"
