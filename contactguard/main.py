from contactguard.api.main import app

__all__ = ["app"]
