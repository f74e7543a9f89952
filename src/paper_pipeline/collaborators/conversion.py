"""
Document conversion through the registry: upload the PDF, then request
conversion of the uploaded URL.
"""
import logging
from pathlib import Path

from .base import DocumentConverter
from .registry import RegistryClient
from .storage import ObjectStorageUploader
from ..pipeline.models import Attachment, AttachmentSet
from ..pipeline.errors import TransportError


class RegistryDocumentConverter(DocumentConverter):

    def __init__(self, uploader: ObjectStorageUploader, registry: RegistryClient):
        self.uploader = uploader
        self.registry = registry
        self.logger = logging.getLogger(self.__class__.__name__)

    async def convert_document(self, document_file: Path) -> AttachmentSet:
        file_url = await self.uploader.upload(document_file)
        body = await self.registry.request_conversion(file_url, document_file.name)

        data = body.get('data')
        if data is None:
            data = []
        if not isinstance(data, list):
            raise TransportError(f"Unexpected conversion payload for {document_file.name}")

        attachments = AttachmentSet([Attachment.from_dict(item) for item in data
                                     if isinstance(item, dict)])

        converted = sum(len(a.converter_files) for a in attachments.attachments)
        self.logger.info(f"Conversion of {document_file.name}: "
                         f"{len(attachments.attachments)} attachments, {converted} converted files")
        return attachments
