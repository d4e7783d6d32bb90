"""Datalayer: uniform datasource contract with caching and resilience.

Backends (Firestore REST, plain REST) compose an in-process MemoryCache and
an ErrorHandler; callers only ever see DataSourceException on failure.
"""

__version__ = "1.0.0"
