"""Role-to-credential resolution for scenario requests.

Roles are registered with a capability set and either a pre-issued token
or, when the provider holds a signing secret, a token minted on demand as
an HS256 JWT. Resolution is a pure lookup: making a role's account exist
on the storefront (user factories, seeding) is the caller's concern.

Token claims::

    {
      "sub": "customer@storefront-qa",
      "role": "customer",
      "caps": ["contact:submit", "products:read"],
      "iat": 1700000000,
      "exp": 1700003600
    }
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import jwt

from .errors import ScenarioConfigError, UnknownRoleError

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 3600

DEFAULT_ROLE_CAPABILITIES: Mapping[str, frozenset[str]] = MappingProxyType({
    'customer': frozenset({'products:read', 'contact:submit'}),
    'admin': frozenset({
        'products:read',
        'products:read-stock',
        'contact:submit',
        'brands:delete',
    }),
})


@dataclass(frozen=True, slots=True)
class RoleDefinition:
    """A named identity tier and the capabilities it grants."""

    name: str
    capabilities: frozenset[str] = frozenset()
    token: str | None = None
    subject: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ScenarioConfigError('role name must be non-empty')
        object.__setattr__(self, 'capabilities', frozenset(self.capabilities))


@dataclass(frozen=True, slots=True)
class Credentials:
    """Credential material attached to an outgoing request."""

    role: str
    token: str
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        # Never render token material.
        return f'Credentials(role={self.role!r})'


class IdentityProvider:
    """Resolve role names into credentials.

    Args:
        roles: Role definitions to register.
        signing_secret: HS256 secret used to mint tokens for roles
            without a pre-issued token.
        scheme: ``bearer`` (Authorization header) or ``cookie``.
        cookie_name: Cookie carrying the token for the cookie scheme.
    """

    def __init__(
        self,
        roles: Iterable[RoleDefinition] = (),
        *,
        signing_secret: str = '',
        scheme: str = 'bearer',
        cookie_name: str = 'session',
        token_ttl_seconds: int = TOKEN_TTL_SECONDS,
    ) -> None:
        if scheme not in ('bearer', 'cookie'):
            raise ScenarioConfigError(f'unsupported auth scheme {scheme!r}')
        self._secret = signing_secret
        self._scheme = scheme
        self._cookie_name = cookie_name
        self._ttl = token_ttl_seconds
        self._roles: dict[str, RoleDefinition] = {}
        for role in roles:
            self.register(role)

    @classmethod
    def from_settings(cls, settings: Any) -> IdentityProvider:
        """Build the default customer/admin provider from RunSettings.

        Roles named only in ``settings.role_tokens`` are registered with
        an empty capability set.
        """
        names = list(DEFAULT_ROLE_CAPABILITIES)
        names.extend(n for n in settings.role_tokens if n not in names)
        provider = cls(
            signing_secret=settings.jwt_secret,
            scheme=settings.auth_scheme,
            cookie_name=settings.session_cookie_name,
        )
        for name in names:
            token = settings.role_tokens.get(name)
            if token is None and not settings.jwt_secret:
                # Unauthenticatable roles stay unknown; scenarios acting as
                # them fail with UnknownRoleError.
                logger.debug('Skipping role %s: no token and no signing secret', name)
                continue
            provider.register(RoleDefinition(
                name=name,
                capabilities=DEFAULT_ROLE_CAPABILITIES.get(name, frozenset()),
                token=token,
            ))
        return provider

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(sorted(self._roles))

    def register(self, role: RoleDefinition) -> None:
        """Register (or replace) a role.

        Raises:
            ScenarioConfigError: If the role has no token and there is no
                signing secret to mint one.
        """
        if role.token is None and not self._secret:
            raise ScenarioConfigError(
                f'role {role.name!r} has no token and no signing secret is configured'
            )
        self._roles[role.name] = role

    def roles_with(self, capability: str) -> tuple[str, ...]:
        """Registered role names holding *capability*."""
        return tuple(
            name for name in sorted(self._roles)
            if capability in self._roles[name].capabilities
        )

    def capabilities(self, role: str) -> frozenset[str]:
        return self._lookup(role).capabilities

    def resolve(self, role: str) -> Credentials:
        """Return credentials for *role*.

        Raises:
            UnknownRoleError: If the role is not registered.
        """
        definition = self._lookup(role)
        token = definition.token or self._mint(definition)
        if self._scheme == 'cookie':
            return Credentials(
                role=role,
                token=token,
                cookies=MappingProxyType({self._cookie_name: token}),
            )
        return Credentials(
            role=role,
            token=token,
            headers=MappingProxyType({'Authorization': f'Bearer {token}'}),
        )

    def _lookup(self, role: str) -> RoleDefinition:
        try:
            return self._roles[role]
        except KeyError:
            raise UnknownRoleError(role, self.roles) from None

    def _mint(self, definition: RoleDefinition) -> str:
        now = int(time.time())
        claims = {
            'sub': definition.subject or f'{definition.name}@storefront-qa',
            'role': definition.name,
            'caps': sorted(definition.capabilities),
            'iat': now,
            'exp': now + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm='HS256')
