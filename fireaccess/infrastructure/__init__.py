"""Infrastructure layer: REST handles for Firebase services."""
