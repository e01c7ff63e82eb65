"""
Delivery bounded context: domain layer.

This module contains all domain logic for the delivery context:
- Entity model (users, packages) and their document form
- Validation engine
- Package and transporter lifecycle
- Transporter assignment matching
"""
