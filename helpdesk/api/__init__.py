"""Chat service exposing POST /api/chat to the widget."""
