"""Plantcare - plant collection and watering schedule service."""
