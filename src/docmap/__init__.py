"""Relational schema to document collection mapping toolkit."""
