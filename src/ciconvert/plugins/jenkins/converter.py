"""
Jenkinsfile converter.

Jenkinsfiles are Groovy programs, so they are not parsed here. The source is
sent to a chat-completion service which rewrites it into another provider's
YAML; that document is then converted by the matching provider converter.
"""

import logging
import os
from typing import Any

import requests

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.exceptions import (
    ConversionError,
    ExternalServiceError,
    UnsupportedProviderError,
)
from ...core.options import ConverterOptions
from ..drone.converter import DroneConverter
from ..github.converter import GitHubConverter
from ..gitlab.converter import GitLabConverter
from .client import (
    DEFAULT_ENDPOINT,
    DEFAULT_MODEL,
    PROMPT,
    ChatCompletionClient,
    extract_code_fence,
)

logger = logging.getLogger(__name__)

TOKEN_ENV = "OPENAI_API_KEY"

TARGET_FORMATS: dict[str, type[BaseConverter]] = {
    "gitlab": GitLabConverter,
    "github": GitHubConverter,
    "drone": DroneConverter,
}


class JenkinsConverter(BaseConverter):
    """
    Converts a Jenkinsfile through an intermediate provider document.

    The intermediate format defaults to GitLab CI. The service is called
    once per conversion; when the generated text cannot be converted the raw
    response is logged at ERROR before the failure is raised.
    """

    name = "jenkins"
    description = "Jenkins (through a chat-completion service)"
    supported_files = ["Jenkinsfile"]
    extra_options = ("token", "format", "model", "endpoint", "debug")

    def __init__(
        self,
        options: ConverterOptions | None = None,
        *,
        token: str | None = None,
        format: str = "gitlab",
        model: str = DEFAULT_MODEL,
        endpoint: str = DEFAULT_ENDPOINT,
        debug: bool = False,
        session: requests.Session | None = None,
    ):
        super().__init__()
        self.options = options or ConverterOptions()
        self.format = (format or "gitlab").strip().lower()
        if self.format not in TARGET_FORMATS:
            raise UnsupportedProviderError(
                f"Unsupported intermediate format '{format}' "
                f"(choose from {', '.join(TARGET_FORMATS)})",
                provider=self.format,
            )
        self.debug = debug
        self.target = TARGET_FORMATS[self.format](self.options)
        self.client = ChatCompletionClient(
            token=token or os.environ.get(TOKEN_ENV, ""),
            model=model,
            endpoint=endpoint,
            session=session,
        )

    def get_parser(self) -> BaseDocumentParser:
        """Parser of the generated intermediate document."""
        return self.target.get_parser()

    def convert_document(self, document: Any) -> Any:
        return self.target.convert_document(document)

    def convert_text(self, text: str) -> bytes:
        self._logger.info(f"Converting Jenkinsfile through the {self.format} format")
        content = self.client.complete(PROMPT.format(format=self.format, source=text))

        try:
            code = extract_code_fence(content)
            if self.debug:
                self._logger.info(f"Generated {self.format} document:\n{code}")
            output = self.target.convert_string(code)
        except (ValueError, ConversionError) as e:
            self._logger.error(f"Unusable chat-completion response:\n{content}")
            raise ExternalServiceError(
                f"Generated {self.format} pipeline could not be converted: {e}",
                endpoint=self.client.endpoint,
            ) from e

        self._logger.info("Conversion of Jenkinsfile completed")
        return output
