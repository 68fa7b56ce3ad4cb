"""
Fetch targets per data source.

A FetchTarget is a fully resolved outbound request. Secrets travel in
`params` only; `display_url` is the only form that may be logged.
"""

from __future__ import annotations

from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

from surveyor.app.fetch.content import FetchError
from surveyor.app.schemas.jurisdictions import Jurisdiction, get_profile
from surveyor.app.schemas.outcome import FailureKind
from surveyor.app.schemas.requests import CredentialsBundle, DataSource


OPENSTATES_BILLS_URL = "https://v3.openstates.org/bills"
LEGISCAN_API_URL = "https://api.legiscan.com/"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FetchTarget(BaseModel):
    url: str
    params: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    display_url: str = Field(..., description="Canonical, secret-free URL")
    format: Literal["html", "openstates", "legiscan"]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


def legislature_target(code: Jurisdiction) -> FetchTarget:
    url = get_profile(code).legislature_url
    return FetchTarget(
        url=url,
        headers={"User-Agent": BROWSER_USER_AGENT},
        display_url=url,
        format="html",
    )


def proxied(target: FetchTarget, *, endpoint: str, api_key: str) -> FetchTarget:
    """Route a target through the outbound scraping proxy."""
    return FetchTarget(
        url=endpoint,
        params={"apikey": api_key, "url": target.url},
        display_url=target.display_url,
        format=target.format,
    )


def openstates_target(code: Jurisdiction, query: str, api_key: str) -> FetchTarget:
    return FetchTarget(
        url=OPENSTATES_BILLS_URL,
        params={
            "jurisdiction": code.value,
            "q": query,
            "sort": "updated_desc",
            "per_page": "1",
            "apikey": api_key,
        },
        display_url=f"https://openstates.org/{code.value.lower()}/",
        format="openstates",
    )


def legiscan_target(code: Jurisdiction, query: str, api_key: str) -> FetchTarget:
    return FetchTarget(
        url=LEGISCAN_API_URL,
        params={
            "key": api_key,
            "op": "getSearch",
            "state": code.value,
            "query": query,
        },
        display_url=f"https://legiscan.com/{code.value}",
        format="legiscan",
    )


def resolve_target(
    code: Jurisdiction,
    *,
    query: str,
    data_source: DataSource,
    credentials: CredentialsBundle,
    proxy_endpoint: str,
) -> FetchTarget:
    """
    Pick the outbound request for a fetching data source.

    Raises FetchError(no_credentials) when the source needs a key that is
    not present. Never retried: retrying will not produce credentials.
    """
    if data_source is DataSource.LLM_SCRAPER:
        return legislature_target(code)

    if data_source is DataSource.SCRAPING_PROXY:
        key = credentials.secret("scraping_key")
        if key is None:
            raise FetchError(
                FailureKind.NO_CREDENTIALS,
                "scraping_proxy requires a scraping proxy key",
                attempts=0,
            )
        return proxied(legislature_target(code), endpoint=proxy_endpoint, api_key=key)

    if data_source is DataSource.OFFICIAL_API:
        openstates_key = credentials.secret("openstates_key")
        if openstates_key is not None:
            return openstates_target(code, query, openstates_key)
        legiscan_key = credentials.secret("legiscan_key")
        if legiscan_key is not None:
            return legiscan_target(code, query, legiscan_key)
        raise FetchError(
            FailureKind.NO_CREDENTIALS,
            "official_api requires an Open States or LegiScan key",
            attempts=0,
        )

    raise ValueError(f"Data source '{data_source.value}' does not fetch")
