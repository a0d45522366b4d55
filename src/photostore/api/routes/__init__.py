from . import health, photos, users

__all__ = ["health", "photos", "users"]
