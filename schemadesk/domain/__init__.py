"""Domain Layer: value objects, payload shapes, events and interfaces."""
