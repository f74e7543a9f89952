"""
Registry client - HTTP API of the paper registry (aiohttp).

Covers the existence check, paper submission, upload credentials and the
attachment conversion request. One ClientSession is shared by all tasks.
"""
import asyncio
import json
import logging
from typing import Dict, Any, Optional

import aiohttp

from .base import ExistenceChecker, ArtifactSubmitter
from ..config.pipeline_config import RegistryConfig, StorageConfig
from ..pipeline.errors import RegistryError, Rejected, TransportError

CHECK_NAME_PATH = "/paper/check/paperName"
SAVE_PAPER_PATH = "/paper/new/save"
CREDENTIAL_PATH = "/attachment/get/credential"
CONVERT_PATH = "/attachment/batch/upload/files"


class RegistryClient(ExistenceChecker, ArtifactSubmitter):
    """Thin async wrapper over the registry endpoints."""

    def __init__(self, session: aiohttp.ClientSession, config: RegistryConfig,
                 storage: Optional[StorageConfig] = None):
        self.session = session
        self.config = config
        self.storage = storage or StorageConfig()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _headers(self) -> Dict[str, str]:
        headers = {
            'User-Agent': self.config.user_agent,
            'Referer': self.config.referer,
            'Origin': self.config.origin,
            'Accept': 'application/json, text/plain, */*',
        }
        if self.config.token:
            headers['Cookie'] = self.config.token
        if self.config.tiku_token:
            headers['tikutoken'] = self.config.tiku_token
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Perform one call and decode the JSON body.

        Raises:
            TransportError: network failure, timeout, HTTP 5xx or undecodable body
            Rejected: HTTP 4xx with a decodable body
        """
        url = self._url(path)
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        try:
            async with self.session.request(method, url, headers=self._headers(),
                                            timeout=timeout, **kwargs) as response:
                raw = await response.read()
                status = response.status
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timeout calling {path}") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to {path} failed: {e}") from e

        self.logger.debug(f"{method} {path} -> {status}")

        if status >= 500:
            raise TransportError(f"HTTP {status} from {path}")

        try:
            body = json.loads(raw.decode('utf-8'))
        except ValueError as e:
            # UnicodeDecodeError is a ValueError
            raise TransportError(f"Undecodable response from {path} (HTTP {status}): {e}") from e

        if status >= 400:
            raise Rejected(f"HTTP {status} from {path}: {_message(body)}")

        if not isinstance(body, dict):
            raise TransportError(f"Unexpected response shape from {path}")

        return body

    async def check_exists(self, title: str) -> bool:
        """
        Raises:
            RegistryError: the registry could not answer
        """
        params = {'paperName': title, 'operationType': '1', 'paperId': ''}
        try:
            body = await self._request('GET', CHECK_NAME_PATH, params=params)
        except (TransportError, Rejected) as e:
            raise RegistryError(str(e)) from e

        data = body.get('data')
        if not isinstance(data, dict) or not isinstance(data.get('repeated'), bool):
            raise RegistryError(f"Missing 'data.repeated' in check response for '{title}'")

        repeated = data['repeated']
        self.logger.debug(f"Title '{title}' {'exists' if repeated else 'is new'}")
        return repeated

    async def submit(self, payload: dict) -> str:
        body = await self._request('POST', SAVE_PAPER_PATH, json=payload)

        if body.get('success') is False:
            raise Rejected(_message(body))

        registry_id = body.get('data')
        if not isinstance(registry_id, str) or not registry_id:
            raise Rejected(f"No paper id in response: {_message(body)}")

        return registry_id

    async def get_upload_credential(self) -> Dict[str, Any]:
        """Temporary object storage credentials and bucket coordinates."""
        body = await self._request('POST', CREDENTIAL_PATH, json={
            'storageType': self.storage.storage_type,
            'securityLevel': self.storage.security_level,
        })

        data = body.get('data')
        if not isinstance(data, dict) or 'credentials' not in data:
            raise TransportError(f"Malformed credential response: {_message(body)}")
        return data

    async def request_conversion(self, file_url: str, file_name: str) -> Dict[str, Any]:
        """Ask the registry to convert an uploaded PDF into attachments."""
        body = await self._request('POST', CONVERT_PATH, json={
            'uploadAttachments': [{
                'fileName': file_name,
                'fileType': 'application/pdf',
                'fileUrl': file_url,
                'resourceType': self.config.resource_type,
            }]
        })

        if body.get('success') is False:
            raise TransportError(f"Conversion request failed: {_message(body)}")
        return body


def _message(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get('message') or body.get('msg') or body)
    return str(body)
