"""Routine tree contracts, name binding and scaffolding synthesis."""
