"""
Infrastructure adapters for the delivery bounded context.

Each adapter implements a domain port (ABC) and connects
to an external system: an in-process store, a SQL database,
a password hashing library.
"""
