"""Delivery engine, query service, composition and visibility helpers."""
