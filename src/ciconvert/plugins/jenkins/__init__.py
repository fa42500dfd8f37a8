"""Jenkins plugin converting Jenkinsfiles through a chat-completion service."""

from .client import ChatCompletionClient, extract_code_fence
from .converter import JenkinsConverter

__all__ = ["ChatCompletionClient", "JenkinsConverter", "extract_code_fence"]
