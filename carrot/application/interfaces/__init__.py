from .chat_backend import ChatBackend, SchemaConverter

__all__ = [
    "ChatBackend",
    "SchemaConverter",
]
