"""File sharing core: access resolution, share lifecycle, audit trail, ingestion."""

from .settings import ShareSettings

__all__ = ['ShareSettings', 'create_app']


def __getattr__(name: str):
    # Lazy so importing the core never drags in FastAPI.
    if name == 'create_app':
        from .main import create_app
        return create_app
    raise AttributeError(name)
