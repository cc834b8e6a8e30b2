from noticeboard.api.main import app

__all__ = ["app"]
