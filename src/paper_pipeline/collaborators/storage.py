"""
Object storage upload.

The registry hands out short-lived credentials for an S3-compatible bucket.
A presigned PUT URL is built with boto3 and the bytes are sent with aiohttp.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any

import aiohttp
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError as BotoClientError

from .registry import RegistryClient
from ..config.pipeline_config import StorageConfig
from ..pipeline.errors import TransportError

CONTENT_TYPES = {
    'pdf': 'application/pdf',
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
}


@dataclass(frozen=True)
class UploadCredential:
    secret_id: str
    secret_key: str
    session_token: str
    bucket: str
    region: str
    key_prefix: str
    cdn_domain: str

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "UploadCredential":
        try:
            creds = data['credentials']
            return cls(
                secret_id=creds['tmpSecretId'],
                secret_key=creds['tmpSecretKey'],
                session_token=creds['sessionToken'],
                bucket=data['bucket'],
                region=data['region'],
                key_prefix=data['keyPrefix'],
                cdn_domain=data['cdnDomain'],
            )
        except (KeyError, TypeError) as e:
            raise TransportError(f"Incomplete upload credential: missing {e}") from e

    @property
    def endpoint_url(self) -> str:
        return f"https://cos.{self.region}.myqcloud.com"


def build_object_key(key_prefix: str, extension: str) -> str:
    """`<prefix>/<epoch ms>-<random>.<ext>`"""
    millis = int(time.time() * 1000)
    return f"{key_prefix.rstrip('/')}/{millis}-{random.getrandbits(32)}.{extension}"


class ObjectStorageUploader:
    """Uploads local files and returns their public CDN URL."""

    def __init__(self, session: aiohttp.ClientSession, registry: RegistryClient,
                 config: StorageConfig):
        self.session = session
        self.registry = registry
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    def presign_put(self, credential: UploadCredential, key: str, content_type: str) -> str:
        client = boto3.client(
            's3',
            endpoint_url=credential.endpoint_url,
            region_name=credential.region,
            aws_access_key_id=credential.secret_id,
            aws_secret_access_key=credential.secret_key,
            aws_session_token=credential.session_token,
            config=BotoConfig(signature_version='s3v4', s3={'addressing_style': 'virtual'}),
        )
        return client.generate_presigned_url(
            'put_object',
            Params={'Bucket': credential.bucket, 'Key': key, 'ContentType': content_type},
            ExpiresIn=self.config.presign_expires_seconds,
        )

    async def upload(self, path: Path) -> str:
        """
        Upload one file.

        Raises:
            TransportError: credential, read or upload failure
        """
        credential = UploadCredential.from_response(await self.registry.get_upload_credential())

        extension = path.suffix.lstrip('.').lower() or 'bin'
        content_type = CONTENT_TYPES.get(extension, 'application/octet-stream')
        key = build_object_key(credential.key_prefix, extension)

        try:
            contents = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise TransportError(f"Cannot read {path}: {e}") from e

        try:
            url = await asyncio.to_thread(self.presign_put, credential, key, content_type)
        except (BotoCoreError, BotoClientError) as e:
            raise TransportError(f"Cannot presign upload of {path.name}: {e}") from e

        try:
            async with self.session.put(url, data=contents,
                                        headers={'Content-Type': content_type}) as response:
                if response.status != 200:
                    detail = await response.text(errors="replace")
                    raise TransportError(f"Upload of {path.name} failed with HTTP "
                                         f"{response.status}: {detail[:200]}")
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timeout uploading {path.name}") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Upload of {path.name} failed: {e}") from e

        final_url = f"https://{credential.cdn_domain}/{key}"
        self.logger.info(f"Uploaded {path.name} to {final_url}")
        return final_url
