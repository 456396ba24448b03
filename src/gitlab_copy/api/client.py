"""GitLab API client implementation."""

import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitLabInstanceConfig
from ..models.group import Group, GroupCreate
from ..models.project import Project, ProjectCreate
from .exceptions import (
    GitLabAPIError,
    GitLabAuthenticationError,
    GitLabConflictError,
    GitLabNotFoundError,
    GitLabPermissionError,
    GitLabRateLimitError,
    GitLabValidationError,
)

USER_AGENT = 'gitlab-copy/0.1.0'


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def _error_message(status_code: int, error_data: Any, text: str) -> str:
    """Extract a readable message from a GitLab error body."""
    if isinstance(error_data, dict):
        message = error_data.get('message') or error_data.get('error')
        if message:
            return message if isinstance(message, str) else json.dumps(message)
    return f'HTTP {status_code}: {text}' if text else f'HTTP {status_code}'


def raise_for_status(
    status_code: int, headers: Dict[str, str], error_data: Any, text: str = ''
) -> None:
    """Map a GitLab HTTP status onto the exception hierarchy.

    Args:
        status_code: HTTP status code
        headers: Response headers
        error_data: Decoded JSON body, if any
        text: Raw body used when there is no JSON message

    Raises:
        GitLabAPIError: For any status of 400 and above
    """
    if status_code < 400:
        return

    if status_code == 429:
        retry_after = int(headers.get('Retry-After', 60))
        raise GitLabRateLimitError(
            f'Rate limit exceeded. Retry after {retry_after} seconds',
            retry_after=retry_after,
            status_code=status_code,
        )

    if status_code == 401:
        raise GitLabAuthenticationError('Authentication failed')

    if status_code == 403:
        raise GitLabPermissionError('Permission denied')

    if status_code == 404:
        raise GitLabNotFoundError('Resource not found')

    message = _error_message(status_code, error_data, text)
    response_data = error_data if isinstance(error_data, dict) else None

    if status_code == 409 or (
        status_code == 400 and 'has already been taken' in message
    ):
        raise GitLabConflictError(
            f'Resource already exists: {message}',
            status_code=status_code,
            response_data=response_data,
        )

    if status_code == 400:
        raise GitLabValidationError(
            f'Invalid request: {message}',
            status_code=status_code,
            response_data=response_data,
        )

    raise GitLabAPIError(
        f'API request failed: {message}',
        status_code=status_code,
        response_data=response_data,
    )


class GitLabClient:
    """GitLab API client with authentication."""

    def __init__(self, config: GitLabInstanceConfig):
        """Initialize GitLab client.

        Args:
            config: GitLab instance configuration
        """
        self.config = config
        self.base_url = f'{config.url.rstrip("/")}/api/{config.api_version}'
        self.session = requests.Session()
        self.session.headers.update(self._auth_headers())
        self.session.headers.update(
            {'Content-Type': 'application/json', 'User-Agent': USER_AGENT}
        )
        self.logger = logger.bind(component='GitLabClient')

        self.logger.info(f'Initialized GitLab client for {config.url}')

    def _auth_headers(self) -> Dict[str, str]:
        """Build authentication headers from the configured token."""
        if self.config.token:
            return {'Private-Token': self.config.token}
        if self.config.oauth_token:
            return {'Authorization': f'Bearer {self.config.oauth_token}'}
        raise GitLabAuthenticationError('No authentication token provided')

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response

        Raises:
            GitLabAPIError: For various API errors
        """
        headers = dict(response.headers)

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            raise_for_status(response.status_code, headers, error_data, response.text)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    async def _make_request_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> APIResponse:
        """Make asynchronous API request.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            data: Request body data
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self._build_url(endpoint)
        headers = {'Content-Type': 'application/json', 'User-Agent': USER_AGENT}
        headers.update(self._auth_headers())
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)

        async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
            try:
                async with session.request(
                    method=method, url=url, params=params, json=data, **kwargs
                ) as response:
                    response_headers = dict(response.headers)
                    response_text = await response.text()

                    try:
                        response_data = (
                            json.loads(response_text) if response_text else None
                        )
                    except ValueError:
                        response_data = response_text

                    raise_for_status(
                        response.status, response_headers, response_data, response_text
                    )

                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

            except aiohttp.ClientError as e:
                self.logger.error(f'Network error during API request: {e}')
                raise GitLabAPIError(f'Network error: {e}')

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request.

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self._build_url(endpoint)
        kwargs.setdefault('timeout', self.config.timeout)

        try:
            response = self.session.get(url, params=params, **kwargs)
            return self._handle_response(response)
        except requests.RequestException as e:
            self.logger.error(f'Network error during GET request: {e}')
            raise GitLabAPIError(f'Network error: {e}')

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self._make_request_async('GET', endpoint, params=params, **kwargs)

    async def post_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make asynchronous POST request."""
        return await self._make_request_async('POST', endpoint, data=data, **kwargs)

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated endpoint.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Returns:
            List of all items from all pages
        """
        all_items = []
        page = 1
        params = dict(params or {})
        params['per_page'] = per_page

        while True:
            params['page'] = page
            response = self.get(endpoint, params=params)

            items = response.data
            if not items:
                break

            all_items.extend(items)

            total_pages = response.headers.get('X-Total-Pages')
            if total_pages and page >= int(total_pages):
                break

            if len(items) < per_page:
                break

            page += 1

        self.logger.info(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    def list_groups(self) -> List[Dict[str, Any]]:
        """List every group accessible to the token."""
        return self.get_paginated('/groups', params={'order_by': 'id', 'sort': 'asc'})

    def list_projects(self) -> List[Dict[str, Any]]:
        """List every project the token is a member of."""
        return self.get_paginated(
            '/projects', params={'membership': True, 'order_by': 'id', 'sort': 'asc'}
        )

    async def create_group(self, group: GroupCreate) -> Group:
        """Create a group and return the server's view of it."""
        response = await self.post_async('/groups', data=group.dict(exclude_none=True))
        return Group(**response.data)

    async def create_project(self, project: ProjectCreate) -> Project:
        """Create a project and return the server's view of it."""
        response = await self.post_async(
            '/projects', data=project.dict(exclude_none=True)
        )
        return Project(**response.data)

    async def find_group(self, full_path: str) -> Optional[Group]:
        """Look a group up by full path.

        Returns:
            The group, or None if the server does not know the path
        """
        try:
            response = await self.get_async(f'/groups/{quote(full_path, safe="")}')
        except GitLabNotFoundError:
            return None
        return Group(**response.data)

    async def find_project(self, path_with_namespace: str) -> Optional[Project]:
        """Look a project up by its path with namespace.

        Returns:
            The project, or None if the server does not know the path
        """
        try:
            response = await self.get_async(
                f'/projects/{quote(path_with_namespace, safe="")}'
            )
        except GitLabNotFoundError:
            return None
        return Project(**response.data)

    def test_connection(self) -> bool:
        """Test connection to GitLab instance.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = self.get('/user')
            return response.success
        except GitLabAPIError as e:
            self.logger.error(f'Connection test failed for {self.config.url}: {e}')
            return False

    def close(self):
        """Close the client session."""
        self.session.close()
        self.logger.debug('GitLab client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class GitLabClientFactory:
    """Factory for creating GitLab API clients."""

    @staticmethod
    def create_client(config: GitLabInstanceConfig) -> GitLabClient:
        """Create GitLab client from configuration.

        Args:
            config: GitLab instance configuration

        Returns:
            Configured GitLab client

        Raises:
            GitLabAuthenticationError: If authentication configuration is invalid
        """
        if not config.token and not config.oauth_token:
            raise GitLabAuthenticationError(
                'Either token or oauth_token must be provided'
            )

        return GitLabClient(config)
