"""Service layer: friendship resolution, accounts, posts and auditing."""
