"""Static asset server for virtual-path mappings with caching and byte ranges."""

from .config import AssetServerConfig, ServerConfigurationError
from .file_map import FileMap, FileMapError, MappingEntry, build_file_map
from .middleware import AssetMiddleware
from .response import AssetResponse
from .service import AssetServer

__all__ = [
    "AssetMiddleware",
    "AssetResponse",
    "AssetServer",
    "AssetServerConfig",
    "FileMap",
    "FileMapError",
    "MappingEntry",
    "ServerConfigurationError",
    "build_file_map",
]
