"""Embeddable helpdesk chat: conversation session manager and chat service."""

__version__ = "0.1.0"
