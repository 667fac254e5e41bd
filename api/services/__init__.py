"""Service layer for business logic.

Services keep routes thin and focused on HTTP handling:
- Certificate issuance, verification, listing and deletion
- Durable storage of rendered PDFs
- Outbound e-mail of issued certificates

Layer hierarchy:
    Routes (HTTP) -> Services (Business Logic) -> Repositories (Database)

Services should NOT:
- Directly execute SQL queries (use repositories)
- Know about HTTP request/response details
"""
