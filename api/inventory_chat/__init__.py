"""Inventory chat: LLM-routed lookups over CSV datasets kept in blob storage."""

from .classifier import Classification, LookupPlan, QueryClassifier, resolve
from .config import AppConfig, get_config
from .datasets import DATASETS, Dataset, get_dataset
from .errors import ChatError, ConfigError, RequestTimeoutError
from .service import ChatService

__all__ = [
    "AppConfig",
    "ChatError",
    "ChatService",
    "Classification",
    "ConfigError",
    "DATASETS",
    "Dataset",
    "LookupPlan",
    "QueryClassifier",
    "RequestTimeoutError",
    "get_config",
    "get_dataset",
    "resolve",
]
