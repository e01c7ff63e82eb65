"""
ParcelCarrier: parcel-delivery coordination core.

Application package root. This is a modular monolith using
hexagonal architecture (ports & adapters) with domain-driven design.

Bounded contexts:
    - delivery: Users (admins, transporters), packages, assignment.

Layers:
    - domain: Pure business logic, entities, validation, lifecycle, ports, errors.
    - application: Use cases, DTOs, orchestration.
    - infrastructure: Adapters (in-memory store, SQL database, password hashing).
    - shared: Cross-cutting concerns (logging).
"""
