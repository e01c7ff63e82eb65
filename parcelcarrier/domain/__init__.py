"""
Domain layer package.

Pure business logic. No framework imports, no IO.
"""
