from .config import PipelineConfig, settings
from .database import init_db

__all__ = ["PipelineConfig", "settings", "init_db"]
