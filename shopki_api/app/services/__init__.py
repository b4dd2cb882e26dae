"""
Service layer abstraction.

Each service encapsulates the business logic of one domain.  Services
open their own SQLite connections, raise ``ValueError`` for invalid
input, ``LookupError`` for missing documents and the provider errors
from ``core.exceptions`` when an upstream API misbehaves.  API handlers
translate those into HTTP responses.
"""
