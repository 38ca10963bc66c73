"""Amazon Bedrock infrastructure package."""

from .bedrock_backend import BedrockBackend

__all__ = ["BedrockBackend"]
