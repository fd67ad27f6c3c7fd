"""
Store-side schema: ``$jsonSchema`` validator and index derivation.
"""

from .enforcer import SchemaEnforcer, bson_type, build_indexes, build_validator

__all__ = ["SchemaEnforcer", "bson_type", "build_indexes", "build_validator"]
