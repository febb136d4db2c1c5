"""
External collaborators of the migration pipeline.

Modules:
    base: Abstract SourceClient, CompletionClient and DestinationClient
    http: Shared request loop with retry and exponential backoff
    source: Paginated REST client for the source ledger
    completion: OpenAI-compatible chat completions client
    destination: REST writer for the destination ERP

Usage:
    from clients.source import HTTPSourceClient
    from clients.completion import HTTPCompletionClient
    from clients.destination import HTTPDestinationClient
"""

__all__ = [
    "SourceClient",
    "CompletionClient",
    "DestinationClient",
    "HTTPSourceClient",
    "HTTPCompletionClient",
    "HTTPDestinationClient",
]
