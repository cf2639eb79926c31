from .routes import favorites_bp

__all__ = ["favorites_bp"]
