"""
Shared infrastructure: configuration, database and the error taxonomy.
"""
from .exceptions import (
    AppBaseError,
    ConfigError,
    ModelCallError,
    ModelParseError,
    ImageSynthesisError,
    PersistenceError,
    InvalidRequestError,
    NotFoundError,
)

__all__ = [
    "AppBaseError",
    "ConfigError",
    "ModelCallError",
    "ModelParseError",
    "ImageSynthesisError",
    "PersistenceError",
    "InvalidRequestError",
    "NotFoundError",
]
