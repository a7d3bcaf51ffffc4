"""Infrastructure adapters (database wiring, SQLModel repositories)."""
