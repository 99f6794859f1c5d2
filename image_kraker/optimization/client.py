import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from .. import config
from ..exceptions import CredentialError, DownloadError, ServiceError, TransportError
from ..models import AccountStatus, OptimizationResult

class KrakenClient:
    """
    Client for the Kraken Image Optimizer API.

    Two calls talk to the API: the credential check (user_status) and the
    image upload. Uploads never raise for ordinary failures; they come back
    as an OptimizationResult with success=False and an error message
    prefixed with either TRANSPORT_ERROR_PREFIX or SERVICE_ERROR_PREFIX.
    """

    def __init__(self,
                 api_key: str,
                 api_secret: str,
                 timeout: int = config.API_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.USER_AGENT})

    @property
    def auth(self) -> Dict[str, str]:
        return {'api_key': self.api_key, 'api_secret': self.api_secret}

    def validate_credentials(self) -> AccountStatus:
        """
        Checks the credentials against the API and returns the account quota.

        Raises:
            CredentialError: The API rejected the credentials.
            TransportError: The API could not be reached.
            ServiceError: The API answered with something unreadable.
        """
        try:
            response = self.session.post(
                config.API_USER_STATUS_URL,
                json={'auth': self.auth},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(str(e)) from e

        payload = self._decode(response)
        if not payload.get('success'):
            raise CredentialError(f"Kraken API credentials validation failed. (Error: {payload.get('error')})")

        return AccountStatus(
            quota_total=int(payload.get('quota_total') or 0),
            quota_used=int(payload.get('quota_used') or 0),
            quota_remaining=int(payload.get('quota_remaining') or 0),
        )

    def optimize(self, path: Path, lossy: bool) -> OptimizationResult:
        """Uploads a file and waits for the kraked result. Leaves the local file untouched."""
        data = json.dumps({'auth': self.auth, 'wait': True, 'lossy': lossy})

        try:
            with open(path, 'rb') as f:
                response = self.session.post(
                    config.API_UPLOAD_URL,
                    files={'file': (path.name, f)},
                    data={'data': data},
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            return OptimizationResult(success=False, error_message=f"{config.TRANSPORT_ERROR_PREFIX}{e}")
        except OSError as e:
            # Local read failure; the service was never involved
            return OptimizationResult(success=False, error_message=f"{config.TRANSPORT_ERROR_PREFIX}cannot read {path}: {e}")

        try:
            payload = self._decode(response)
        except ServiceError as e:
            return OptimizationResult(success=False, error_message=f"{config.SERVICE_ERROR_PREFIX}{e}")

        if not payload.get('success'):
            return OptimizationResult(
                success=False,
                error_message=f"{config.SERVICE_ERROR_PREFIX}{payload.get('error') or 'unknown error'}",
            )

        try:
            return OptimizationResult(
                success=True,
                original_size=int(payload['original_size']),
                optimized_size=int(payload['kraked_size']),
                saved_bytes=int(payload['saved_bytes']),
                artifact_url=payload.get('kraked_url'),
            )
        except (KeyError, TypeError, ValueError) as e:
            return OptimizationResult(
                success=False,
                error_message=f"{config.SERVICE_ERROR_PREFIX}incomplete response ({e!r})",
            )

    def download(self, url: str, destination: Path):
        """
        Streams a kraked artifact to destination.

        Raises:
            TransportError: The artifact host could not be reached.
            DownloadError: The artifact host answered with an error or the file could not be written.
        """
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(destination, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=config.DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransportError(str(e)) from e
        except requests.RequestException as e:
            raise DownloadError(str(e)) from e
        except OSError as e:
            raise DownloadError(f"Cannot write {destination}: {e}") from e

    def _decode(self, response: requests.Response) -> Dict[str, Any]:
        """Kraken answers errors with a JSON body too, so the status code alone is not enough."""
        try:
            payload = response.json()
        except ValueError:
            raise ServiceError(f"HTTP {response.status_code}: response is not JSON") from None

        if not isinstance(payload, dict):
            raise ServiceError(f"HTTP {response.status_code}: unexpected response")

        logging.debug(f"Kraken API response ({response.status_code}): {payload}")
        return payload
