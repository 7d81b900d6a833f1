"""Staging area application layer - service, confirmation transaction, HTTP API."""
