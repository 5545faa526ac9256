from .config import Config
from .database_config import DatabaseConfig
from .lookup_config import LookupConfig
from .mirror_config import MirrorConfig

__all__ = ["Config", "DatabaseConfig", "LookupConfig", "MirrorConfig"]
