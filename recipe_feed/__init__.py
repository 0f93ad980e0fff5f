"""
Recipe feed backend.

This package provides the feed synchronization engine that detects newly
published public recipes, emits local notifications for them and routes
tapped notifications back to the recipe detail view, together with the
recipe data layer and a FastAPI surface for the presentation layer.
"""
