from costrouter.catalog.store import JSONCatalog

__all__ = ["JSONCatalog"]
