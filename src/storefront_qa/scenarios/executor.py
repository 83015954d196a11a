"""Issue scenario requests against the storefront API.

One call to :meth:`RequestExecutor.execute` is exactly one network
exchange: no retries, no redirects followed. Connection-level failures
surface as :class:`TransportError`; HTTP error statuses are ordinary
results for the verifier to judge.

For test environments, pass an httpx.AsyncClient directly::

    transport = httpx.MockTransport(handler)
    executor = RequestExecutor('http://test', client=httpx.AsyncClient(transport=transport))
"""

from __future__ import annotations

import re
import time
from types import MappingProxyType
from typing import Any, Mapping

import httpx

from storefront_qa.observability import get_logger

from .errors import ScenarioDefinitionError, TransportError
from .identity import Credentials
from .models import ExecutionResult, RequestDescriptor

logger = get_logger(__name__)

_PLACEHOLDER_RE = re.compile(r'\{([A-Za-z_][A-Za-z0-9_]*)\}')


class RequestExecutor:
    """Execute :class:`RequestDescriptor` objects over HTTP.

    Args:
        base_url: Base URL relative paths resolve against.
        variables: Values for ``{name}`` placeholders in paths.
        timeout_seconds: Per-request timeout.
        client: Optional httpx.AsyncClient (for test injection).
    """

    def __init__(
        self,
        base_url: str,
        *,
        variables: Mapping[str, str] | None = None,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip('/')
        self._variables = MappingProxyType(dict(variables or {}))
        self._timeout = timeout_seconds
        self._client = client or httpx.AsyncClient(follow_redirects=False)
        self._owns_client = client is None

    async def __aenter__(self) -> RequestExecutor:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def resolve_url(self, path: str) -> str:
        """Resolve a path template against the base URL and variables.

        Raises:
            ScenarioDefinitionError: If a placeholder has no value.
        """
        missing = [
            name for name in _PLACEHOLDER_RE.findall(path)
            if name not in self._variables
        ]
        if missing:
            raise ScenarioDefinitionError(
                f'unresolved path variables in {path!r}: {", ".join(missing)}'
            )
        resolved = _PLACEHOLDER_RE.sub(lambda m: self._variables[m.group(1)], path)
        if resolved.startswith(('http://', 'https://')):
            return resolved
        return f'{self._base_url}{resolved}'

    async def execute(
        self,
        descriptor: RequestDescriptor,
        credentials: Credentials | None = None,
    ) -> ExecutionResult:
        """Perform one HTTP exchange for *descriptor*.

        Args:
            descriptor: Request to issue.
            credentials: Identity to attach; None sends the request
                unauthenticated.

        Returns:
            ExecutionResult with status, raw body, and parsed JSON.

        Raises:
            ScenarioDefinitionError: If the path cannot be resolved.
            TransportError: If the exchange fails (DNS, refused, timeout).
        """
        url = self.resolve_url(descriptor.path)
        headers: dict[str, str] = {'Accept': 'application/json'}
        cookies: dict[str, str] = {}
        if credentials is not None:
            headers.update(credentials.headers)
            cookies.update(credentials.cookies)

        request_kwargs = _encode_body(descriptor)
        if cookies:
            # Per-request cookies go in a header so they never leak into
            # the shared client's cookie jar.
            headers['Cookie'] = '; '.join(f'{k}={v}' for k, v in cookies.items())

        logger.debug(
            'request_sent',
            method=descriptor.method,
            url=url,
            role=credentials.role if credentials else None,
            attachments=len(descriptor.attachments),
        )

        start = time.monotonic()
        try:
            response = await self._client.request(
                method=descriptor.method,
                url=url,
                headers=headers,
                timeout=self._timeout,
                **request_kwargs,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                'transport_error',
                method=descriptor.method,
                url=url,
                error=f'{type(exc).__name__}: {exc}',
            )
            raise TransportError(descriptor.method, url, exc) from exc
        elapsed_ms = (time.monotonic() - start) * 1000

        return ExecutionResult(
            status_code=response.status_code,
            raw_body=response.content,
            parsed_json=_parse_json(response),
            headers=MappingProxyType(dict(response.headers)),
            elapsed_ms=elapsed_ms,
        )


# ── Helpers ────────────────────────────────────────────────────────


def _encode_body(descriptor: RequestDescriptor) -> dict[str, Any]:
    """Build httpx request kwargs for the descriptor's body."""
    if descriptor.attachments:
        files = [
            (
                descriptor.attachment_field,
                (item.filename, item.payload(), item.content_type),
            )
            for item in descriptor.attachments
        ]
        data = _form_fields(descriptor.json_body or {})
        return {'data': data, 'files': files}
    if descriptor.json_body is not None:
        return {'json': dict(descriptor.json_body)}
    return {}


def _form_fields(body: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a JSON body into multipart form fields."""
    fields: dict[str, Any] = {}
    for key, value in body.items():
        if value is None:
            continue
        if isinstance(value, bool):
            fields[key] = '1' if value else '0'
        elif isinstance(value, (list, tuple)):
            fields[key] = [str(v) for v in value]
        else:
            fields[key] = str(value)
    return fields


def _parse_json(response: httpx.Response) -> Any:
    """Parse the response body as JSON, or None if it is not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
