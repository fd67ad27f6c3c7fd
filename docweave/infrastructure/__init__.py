"""
Infrastructure Module.

Logging and the document-store adapter.
"""
