from .factory import DatabaseProviderFactory

class DatabaseManager:
    _instance = None

    def __init__(self, settings):
        self.db = DatabaseProviderFactory.create(settings)

    @classmethod
    def get_instance(cls, settings=None):
        if cls._instance is None:
            if settings is None:
                from framework.config import settings as app_settings
                settings = app_settings
            cls._instance = cls(settings)
        return cls._instance

    @classmethod
    async def reset_instance(cls):
        """Dispose the current driver and forget the singleton."""
        if cls._instance is not None:
            await cls._instance.db.disconnect()
            cls._instance = None


async def get_db():
    """FastAPI dependency: one session per request."""
    manager = DatabaseManager.get_instance()
    async for session in manager.db.get_session():
        yield session
