"""Services module - Business logic layer"""

from .config_manager import ConfigManager
from .file_parser import parse_multi_file_response, serialize_files
from .llm_service import ProviderClientRegistry
from .prompt_composer import compose
from .provider_registry import ProviderRegistry
from .stream_consumer import EditorState, StreamConsumer, StudioClient
from .stream_normalizer import MemorySink, QueueSink, StreamNormalizer

__all__ = [
    "ConfigManager",
    "parse_multi_file_response",
    "serialize_files",
    "ProviderClientRegistry",
    "compose",
    "ProviderRegistry",
    "EditorState",
    "StreamConsumer",
    "StudioClient",
    "MemorySink",
    "QueueSink",
    "StreamNormalizer",
]
