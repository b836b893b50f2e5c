"""Request builders for the paged endpoints, and plain-language filter descriptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from inat_explorer.datasources.inaturalist.client import API_BASE
from inat_explorer.schemas import RetrievalRequest, Taxon

if TYPE_CHECKING:
    from inat_explorer.datasources.inaturalist.client import INatClient

OBSERVATIONS_PER_PAGE = 500  # API maximum for /observations with this filter set

# Include verifiable=true; this matches the iNaturalist web UI default.
SPECIES_COUNTS_DEFAULTS: dict[str, Any] = {"verifiable": "true"}
OBSERVATIONS_DEFAULTS: dict[str, Any] = {
    "verifiable": "true",
    "per_page": OBSERVATIONS_PER_PAGE,
}


def species_counts_request(
    params: dict[str, Any],
    label: str = "species",
    api_base: str = API_BASE,
) -> RetrievalRequest:
    """GET /observations/species_counts: taxa with observation counts."""
    return RetrievalRequest(
        url=f"{api_base}/observations/species_counts",
        params={**SPECIES_COUNTS_DEFAULTS, **params},
        label=label,
    )


def observations_request(
    params: dict[str, Any],
    label: str = "observations",
    api_base: str = API_BASE,
) -> RetrievalRequest:
    """GET /observations: individual observations."""
    return RetrievalRequest(
        url=f"{api_base}/observations",
        params={**OBSERVATIONS_DEFAULTS, **params},
        label=label,
    )


def project_members_request(
    project_id: str | int,
    label: str = "project members",
    api_base: str = API_BASE,
) -> RetrievalRequest:
    """GET /projects/{id}/members."""
    return RetrievalRequest(url=f"{api_base}/projects/{project_id}/members", label=label)


def parse_filter_args(pairs: list[str]) -> dict[str, str]:
    """Turn ``["taxon_id=47224", "place_id=10"]`` into a params dict."""
    params: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            msg = f"Expected NAME=VALUE, got {pair!r}"
            raise ValueError(msg)
        params[name.strip()] = value.strip()
    return params


# =============================================================================
# Descriptions
# =============================================================================

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

QUALITY_GRADE_NOTES = {
    "research": "research grade only",
    "needs_id": "needs ID only",
}


def _values(value: Any) -> list[str]:
    """Split a param value (``"6,7"``, ``[6, 7]`` or ``6``) into strings."""
    if isinstance(value, list | tuple | set):
        return [str(v) for v in value]
    return [v.strip() for v in str(value).split(",") if v.strip()]


def describe_filter(
    client: INatClient,
    params: dict[str, Any],
    exclude: dict[str, Any] | None = None,
) -> str:
    """
    Describe a species filter in words.

    Taxon, user, project and place ids are resolved through ``client`` (so
    they are cached), e.g.::

        Class Insecta observed by someone in Tilden Regional Park, CA, US
        (research grade only), excluding Class Insecta observed in ...

    Args:
        client: Used for entity lookups.
        params: The filter to describe.
        exclude: Optional exclusion filter, appended as ", excluding ...".
    """
    description = "Species"
    if params.get("taxon_id"):
        taxon = Taxon.model_validate(client.get_taxon(params["taxon_id"]))
        description = taxon.form_name(add_common_name=False)
    description += " observed"

    if params.get("user_id"):
        user = client.get_user(params["user_id"])
        description += f" by {user.get('login', params['user_id'])}"
    if params.get("project_id"):
        project = client.get_project(params["project_id"])
        description += f' in project "{project.get("title", params["project_id"])}"'
    if params.get("place_id"):
        place = client.get_place(params["place_id"])
        description += f" in {place.get('display_name', params['place_id'])}"
    if params.get("month"):
        months = [MONTH_NAMES[int(m) - 1] for m in _values(params["month"])]
        description += f" in {', '.join(months)}"
    if params.get("year"):
        description += f" in {', '.join(_values(params['year']))}"

    grades = _values(params.get("quality_grade") or [])
    if len(grades) == 1 and grades[0] in QUALITY_GRADE_NOTES:
        description += f" ({QUALITY_GRADE_NOTES[grades[0]]})"

    if exclude:
        description += ", excluding " + describe_filter(client, exclude)
    return description
