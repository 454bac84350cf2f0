"""
netric CLI - Three-layer client for the netric entity API.

Layers:
- core: Entity types, wire codecs and the authenticating HTTP client
- sdk: High-level ApiCaller with entity and collection operations
- cli: Command-line interface
"""

from netric_cli.sdk import ApiCaller

__version__ = "0.1.0"
__all__ = ["ApiCaller"]
