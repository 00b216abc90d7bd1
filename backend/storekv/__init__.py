"""
Store KV

Key-value persistence and caching layer for the storefront admin data model.
"""

__version__ = "0.1.0"
