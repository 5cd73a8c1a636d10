"""Service layer: detection, suggestion ranking and feedback adaptation."""
