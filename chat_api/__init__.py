"""Chat API: messaging backend built on FastAPI and async SQLAlchemy."""

__version__ = "1.0.0"
