"""Pure domain pieces: records, validation, credentials, errors, requests.

Nothing here touches the filesystem or HTTP, so it can be unit-tested and
reused by the server, the CLI and the smoke runner.
"""
__all__ = ["credentials", "errors", "records", "request", "validation"]
