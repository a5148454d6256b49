"""Endpoint modules for the WeatherFlow REST API (internal)."""
