"""
Repo-level database tooling for the portal: Alembic migrations (`db/migrations`) and the
deterministic seed (`python -m db.seed`). The service itself talks to Postgres through
`services.portal.app.db`.
"""
