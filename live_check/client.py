"""
LanguageTool HTTP Client for LiveCheck
======================================
Submits text to a LanguageTool-compatible /v2/check endpoint.

Features:
- Shared requests.Session per client
- Optional username + API key for premium endpoints
- Bounded wait (request timeout) on every call
- Response parsed into typed CheckResponse records

Requires: pip install requests
"""

from typing import Dict, Optional

import requests

from config_logging import (
    get_logger, CheckerConfig, CheckServiceError, ResponseParseError,
    DEFAULT_LANGUAGE, DEFAULT_REQUEST_TIMEOUT, DEFAULT_SERVICE_URL, VERSION
)

from .models import CheckResponse

logger = get_logger('live_check.client')


class LanguageToolClient:
    """
    Client for the remote prose-checking service.

    Usage:
        client = LanguageToolClient('https://api.languagetool.org', language='en-US')
        response = client.check("Their going to the store.\\n")
        for match in response.matches:
            print(match.offset, match.length, match.message)
    """

    CHECK_PATH = '/v2/check'

    def __init__(
        self,
        service_url: str = DEFAULT_SERVICE_URL,
        language: str = DEFAULT_LANGUAGE,
        username: str = "",
        api_key: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            service_url: Base URL of the checking service
            language: Target language code (e.g. 'en-US')
            username: Account name for premium access (optional)
            api_key: API key for premium access (optional)
            timeout: Seconds to wait for a response
            session: Pre-configured requests session (optional)
        """
        self.service_url = service_url.rstrip('/')
        self.language = language
        self.username = username
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault('User-Agent', f'LiveCheck/{VERSION}')
        self._session.headers.setdefault('Accept', 'application/json')

    @classmethod
    def from_config(cls, config: CheckerConfig) -> 'LanguageToolClient':
        """Build a client from checker configuration."""
        return cls(
            service_url=config.service_url,
            language=config.language,
            username=config.username,
            api_key=config.api_key,
            timeout=config.request_timeout,
        )

    @property
    def check_url(self) -> str:
        return self.service_url + self.CHECK_PATH

    def _payload(self, text: str) -> Dict[str, str]:
        payload = {'text': text, 'language': self.language}
        if self.username and self.api_key:
            payload['username'] = self.username
            payload['apiKey'] = self.api_key
        return payload

    def check(self, text: str) -> CheckResponse:
        """
        Check text and return the parsed matches.

        Raises:
            CheckServiceError: timeout, connection failure or HTTP error status
            ResponseParseError: body is not JSON or does not match the schema
        """
        logger.debug(f"Submitting {len(text)} chars to {self.check_url}",
                     language=self.language)
        try:
            response = self._session.post(
                self.check_url,
                data=self._payload(text),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise CheckServiceError(
                f"Checking service timed out after {self.timeout}s",
                service_url=self.service_url
            )
        except requests.exceptions.ConnectionError as e:
            raise CheckServiceError(
                f"Could not connect to checking service: {str(e)[:80]}",
                service_url=self.service_url
            )
        except requests.RequestException as e:
            raise CheckServiceError(
                f"Request error: {str(e)[:80]}",
                service_url=self.service_url
            )

        if response.status_code >= 400:
            raise CheckServiceError(
                f"Checking service returned HTTP {response.status_code}: "
                f"{(response.text or '')[:80]}",
                service_url=self.service_url,
                http_status=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ResponseParseError(f"Checking service returned invalid JSON: {e}", path='$')

        result = CheckResponse.from_dict(body)
        logger.debug(f"Received {len(result.matches)} match(es)")
        return result

    def close(self):
        """Release the HTTP session."""
        self._session.close()
