"""Azure DevOps pipeline converter placeholder."""

import logging
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.exceptions import UnsupportedProviderError
from ...core.options import ConverterOptions

logger = logging.getLogger(__name__)


class AzureParser(BaseDocumentParser):
    provider = "azure"

    def _decode(self, data: Any) -> Any:
        return data


class AzureConverter(BaseConverter):
    """
    Registered so that ``azure`` is a known provider name.

    Azure DevOps pipelines cannot be converted yet; every entry point raises
    UnsupportedProviderError without reading the document.
    """

    name = "azure"
    description = "Azure DevOps (not implemented)"
    supported_files = ["azure-pipelines.yml"]

    def __init__(self, options: ConverterOptions | None = None):
        super().__init__()
        self.options = options or ConverterOptions()

    def get_parser(self) -> AzureParser:
        return AzureParser()

    def convert_document(self, document: Any) -> Any:
        raise UnsupportedProviderError("not implemented", provider=self.name)

    def convert_text(self, text: str) -> bytes:
        raise UnsupportedProviderError("not implemented", provider=self.name)
