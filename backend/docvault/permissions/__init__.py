from .routes import permissions_bp

__all__ = ["permissions_bp"]
