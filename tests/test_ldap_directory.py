"""LdapDirectory against ldap3's in-memory mock server."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

pytest.importorskip("ldap3")

from ldap3 import BASE, MOCK_SYNC, SUBTREE, Connection, Server

from conftest import NOW
from pwreminder.directory import datetime_to_filetime
from pwreminder.directory.ldap import LdapDirectory

DOMAIN = "DC=example,DC=com"
STAFF = "OU=Staff,DC=example,DC=com"
SERVICE_USER = "CN=svc-reminder,OU=Service,DC=example,DC=com"
ADMINS_PSO = "CN=Admins PSO,CN=Password Settings Container,CN=System,DC=example,DC=com"

USER_CLASSES = ["top", "person", "organizationalPerson", "user"]


def _filetime(days_ago: int) -> str:
    return str(datetime_to_filetime(NOW - timedelta(days=days_ago)))


@pytest.fixture()
def directory() -> LdapDirectory:
    connection = Connection(
        Server("dc01.example.com"),
        user=SERVICE_USER,
        password="secret",
        client_strategy=MOCK_SYNC,
        raise_exceptions=True,
    )
    strategy = connection.strategy
    strategy.add_entry(
        SERVICE_USER,
        {"objectClass": USER_CLASSES, "sAMAccountName": "svc-reminder", "userPassword": "secret"},
    )
    strategy.add_entry(DOMAIN, {"objectClass": ["top", "domain", "domainDNS"], "maxPwdAge": "-77760000000000"})
    strategy.add_entry(
        ADMINS_PSO,
        {"objectClass": ["top", "msDS-PasswordSettings"], "cn": "Admins PSO", "msDS-MaximumPasswordAge": "-25920000000000"},
    )
    strategy.add_entry(
        "CN=Alice Able,OU=Staff,DC=example,DC=com",
        {
            "objectClass": USER_CLASSES,
            "sAMAccountName": "alice",
            "cn": "Alice Able",
            "displayName": "Alice Able",
            "givenName": "Alice",
            "mail": "alice@example.com",
            "userAccountControl": "512",
            "pwdLastSet": _filetime(77),
        },
    )
    strategy.add_entry(
        "CN=Carol Admin,OU=Staff,DC=example,DC=com",
        {
            "objectClass": USER_CLASSES,
            "sAMAccountName": "carol",
            "cn": "Carol Admin",
            "userAccountControl": "66048",
            "pwdLastSet": _filetime(10),
            "msDS-ResultantPSO": ADMINS_PSO,
        },
    )
    strategy.add_entry(
        "CN=WS01,OU=Staff,DC=example,DC=com",
        {
            "objectClass": USER_CLASSES + ["computer"],
            "sAMAccountName": "WS01$",
            "cn": "WS01",
            "userAccountControl": "4096",
        },
    )
    connection.bind()
    return LdapDirectory(connection, DOMAIN, page_size=0)


def test_search_returns_users_only(directory: LdapDirectory) -> None:
    accounts = {account.identifier: account for account in directory.search(STAFF)}

    assert set(accounts) == {"alice", "carol"}
    alice = accounts["alice"]
    assert alice.name == "Alice Able"
    assert alice.email == "alice@example.com"
    assert alice.enabled is True
    assert alice.password_last_set == NOW - timedelta(days=77)
    assert accounts["carol"].email is None
    assert accounts["carol"].password_never_expires is True


def test_lookup_by_account_name(directory: LdapDirectory) -> None:
    account = directory.lookup("alice")

    assert account is not None
    assert account.distinguished_name == "CN=Alice Able,OU=Staff,DC=example,DC=com"
    assert directory.lookup("nobody") is None


def test_domain_policy(directory: LdapDirectory) -> None:
    policy = directory.domain_policy()

    assert policy is not None
    assert policy.max_age == timedelta(days=90)
    assert policy.source == "domain"


def test_fine_grained_policy(directory: LdapDirectory) -> None:
    carol = directory.lookup("carol")
    alice = directory.lookup("alice")
    assert carol is not None and alice is not None

    policy = directory.fine_grained_policy(carol)

    assert policy is not None
    assert policy.max_age == timedelta(days=30)
    assert policy.source == "fine-grained"
    assert policy.name == "Admins PSO"
    assert directory.fine_grained_policy(alice) is None


def test_fine_grained_policy_reads_the_account_entry_only(directory: LdapDirectory, monkeypatch) -> None:
    carol = directory.lookup("carol")
    assert carol is not None
    searches = []
    entries = directory._entries

    def recording(search_base, search_filter, attributes, *, scope=SUBTREE):
        searches.append((search_base, scope))
        return entries(search_base, search_filter, attributes, scope=scope)

    monkeypatch.setattr(directory, "_entries", recording)

    directory.fine_grained_policy(carol)
    directory.fine_grained_policy(carol)

    assert searches == [
        ("CN=Carol Admin,OU=Staff,DC=example,DC=com", BASE),
        (ADMINS_PSO, BASE),
        ("CN=Carol Admin,OU=Staff,DC=example,DC=com", BASE),
    ]


def test_fine_grained_policy_without_dn_searches_by_name(directory: LdapDirectory) -> None:
    carol = directory.lookup("carol")
    assert carol is not None

    policy = directory.fine_grained_policy(replace(carol, distinguished_name=None))

    assert policy is not None
    assert policy.name == "Admins PSO"
