from .schema import schema_statements

__all__ = ["schema_statements"]
