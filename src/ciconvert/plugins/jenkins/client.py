"""Minimal chat-completion client used to rewrite Jenkinsfiles."""

import logging
import re

import requests
from pydantic import BaseModel, Field

from ...core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TIMEOUT = 120

PROMPT = "Convert this Jenkinsfile to a {format} Yaml.\n\n```\n{source}\n```\n"

_CODE_FENCE = re.compile(r"```(.*?)(?:```|\Z)", re.DOTALL)


class Message(BaseModel):
    role: str = Field(default="")
    content: str = Field(default="")


class Choice(BaseModel):
    message: Message = Field(default_factory=Message)
    finish_reason: str | None = Field(default=None)
    index: int = Field(default=0)


class Usage(BaseModel):
    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)


class ChatResponse(BaseModel):
    id: str = Field(default="")
    object: str = Field(default="")
    created: int = Field(default=0)
    model: str = Field(default="")
    usage: Usage | None = Field(default=None)
    choices: list[Choice] = Field(default_factory=list)


def extract_code_fence(text: str) -> str:
    """
    Return the contents of the first fenced code block.

    A leading ``yaml`` language tag is stripped. An unterminated fence runs
    to the end of the text.

    Raises:
        ValueError: If the text holds no code fence
    """
    match = _CODE_FENCE.search(text.strip())
    if match is None:
        raise ValueError("no code fence found in the response")
    code = match.group(1)
    if code.startswith("yaml"):
        code = code[len("yaml"):]
    return code


class ChatCompletionClient:
    """
    Sends a single prompt to a chat-completion endpoint.

    A request is made exactly once; failures are reported as
    ExternalServiceError and never retried.
    """

    def __init__(
        self,
        token: str,
        model: str = DEFAULT_MODEL,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.token = token
        self.model = model
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self._logger = logger.getChild(self.__class__.__name__)

    def complete(self, prompt: str) -> str:
        """
        Return the text of the first choice for a single user message.

        Raises:
            ExternalServiceError: On transport errors, non-2xx responses,
                malformed bodies or responses without choices
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {"Authorization": f"Bearer {self.token}"}

        self._logger.debug(f"POST {self.endpoint} (model {self.model})")
        try:
            response = self.session.post(
                self.endpoint, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError(
                f"Request failed: {e}", endpoint=self.endpoint
            ) from e

        if response.status_code > 299:
            raise ExternalServiceError(
                f"client error {response.status_code}: {response.text}",
                endpoint=self.endpoint,
                status_code=response.status_code,
            )

        # invalid JSON and validation failures are both ValueErrors
        try:
            body = ChatResponse.model_validate(response.json())
        except ValueError as e:
            raise ExternalServiceError(
                f"Malformed response body: {e}",
                endpoint=self.endpoint,
                status_code=response.status_code,
            ) from e

        if not body.choices:
            raise ExternalServiceError(
                "the service returned a response with zero choices, "
                "conversion not possible",
                endpoint=self.endpoint,
                status_code=response.status_code,
            )
        return body.choices[0].message.content
