"""Active Directory access through ldap3."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ldap3 import ALL, BASE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from ..config import ConfigurationError, Settings
from ..models import Account, PasswordPolicy
from . import DirectoryError, account_from_attributes, attribute_value, interval_to_timedelta

logger = logging.getLogger("pwreminder.directory")

# Users only; computer accounts also carry objectClass=user.
USER_FILTER = "(&(objectClass=user)(!(objectClass=computer)))"

USER_ATTRIBUTES = [
    "sAMAccountName",
    "cn",
    "displayName",
    "givenName",
    "mail",
    "userAccountControl",
    "msDS-User-Account-Control-Computed",
    "pwdLastSet",
]


class LdapDirectory:
    """Read accounts and password policies from Active Directory.

    ``domain_dn`` is the naming context holding ``maxPwdAge`` and the root
    used when looking up a single account. PSO entries are cached by DN for
    the lifetime of the object; no per-account data is kept.
    """

    def __init__(self, connection: Connection, domain_dn: str, *, page_size: int = 500) -> None:
        self.connection = connection
        self.domain_dn = domain_dn
        self.page_size = page_size
        self._pso_cache: Dict[str, Optional[PasswordPolicy]] = {}

    def _entries(
        self,
        search_base: str,
        search_filter: str,
        attributes: Iterable[str],
        *,
        scope: str = SUBTREE,
    ) -> List[Dict[str, Any]]:
        try:
            if self.page_size and scope == SUBTREE:
                response = self.connection.extend.standard.paged_search(
                    search_base=search_base,
                    search_filter=search_filter,
                    search_scope=scope,
                    attributes=list(attributes),
                    paged_size=self.page_size,
                    generator=False,
                )
            else:
                self.connection.search(search_base, search_filter, search_scope=scope, attributes=list(attributes))
                response = self.connection.response
        except LDAPException as exc:
            raise DirectoryError(f"Search under {search_base} failed: {exc}") from exc
        return [entry for entry in response or [] if entry.get("type") == "searchResEntry"]

    def _user_filter(self, identifier: str) -> str:
        return f"(&{USER_FILTER}(sAMAccountName={escape_filter_chars(identifier)}))"

    def search(self, search_base: str) -> List[Account]:
        entries = self._entries(search_base, USER_FILTER, USER_ATTRIBUTES)
        accounts = [account_from_attributes(entry.get("dn"), entry.get("attributes") or {}) for entry in entries]
        logger.info("Found %d user account(s) under %s", len(accounts), search_base)
        return accounts

    def lookup(self, identifier: str) -> Optional[Account]:
        entries = self._entries(self.domain_dn, self._user_filter(identifier), USER_ATTRIBUTES)
        if not entries:
            return None
        entry = entries[0]
        return account_from_attributes(entry.get("dn"), entry.get("attributes") or {})

    def fine_grained_policy(self, account: Account) -> Optional[PasswordPolicy]:
        """Policy named by the constructed ``msDS-ResultantPSO``, read from the account's own entry."""

        if account.distinguished_name:
            entries = self._entries(account.distinguished_name, "(objectClass=*)", ["msDS-ResultantPSO"], scope=BASE)
        else:
            entries = self._entries(self.domain_dn, self._user_filter(account.identifier), ["msDS-ResultantPSO"])
        if not entries:
            return None
        pso_dn = attribute_value(entries[0].get("attributes") or {}, "msDS-ResultantPSO")
        if not pso_dn:
            return None
        pso_dn = str(pso_dn)
        if pso_dn not in self._pso_cache:
            self._pso_cache[pso_dn] = self._read_pso(pso_dn)
        return self._pso_cache[pso_dn]

    def _read_pso(self, pso_dn: str) -> Optional[PasswordPolicy]:
        entries = self._entries(pso_dn, "(objectClass=*)", ["cn", "msDS-MaximumPasswordAge"], scope=BASE)
        if not entries:
            logger.warning("Password settings object %s could not be read", pso_dn)
            return None
        attributes = entries[0].get("attributes") or {}
        max_age = interval_to_timedelta(attribute_value(attributes, "msDS-MaximumPasswordAge"))
        if max_age is None:
            return None
        return PasswordPolicy(max_age=max_age, source="fine-grained", name=attribute_value(attributes, "cn") or pso_dn)

    def domain_policy(self) -> Optional[PasswordPolicy]:
        entries = self._entries(self.domain_dn, "(objectClass=*)", ["maxPwdAge"], scope=BASE)
        if not entries:
            raise DirectoryError(f"Domain entry {self.domain_dn} was not found")
        max_age = interval_to_timedelta(attribute_value(entries[0].get("attributes") or {}, "maxPwdAge"))
        if max_age is None:
            return None
        return PasswordPolicy(max_age=max_age, source="domain", name=self.domain_dn)

    def close(self) -> None:
        self.connection.unbind()


def connect(settings: Settings, *, scope: Optional[str] = None) -> LdapDirectory:
    """Bind to the configured domain controller.

    ``scope`` is the subtree a test run scans; it supplies the domain DN when
    neither ``DOMAIN_DN`` nor ``BASE_DN`` is set.
    """

    settings.require("ad_server")
    domain_dn = settings.resolved_domain_dn(scope) or settings.search_base or scope
    if not domain_dn:
        raise ConfigurationError("Missing required configuration: DOMAIN_DN or BASE_DN")
    server = Server(settings.ad_server, use_ssl=settings.ad_use_ssl, get_info=ALL)
    try:
        connection = Connection(
            server,
            user=settings.ad_user,
            password=settings.ad_password,
            auto_bind=True,
            read_only=True,
            raise_exceptions=True,
        )
    except LDAPException as exc:
        raise DirectoryError(f"Unable to bind to {settings.ad_server}: {exc}") from exc
    logger.info("Connected to %s", settings.ad_server)
    return LdapDirectory(connection, domain_dn)


__all__ = ["LdapDirectory", "USER_ATTRIBUTES", "USER_FILTER", "connect"]
