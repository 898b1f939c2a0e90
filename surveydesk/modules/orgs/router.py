from fastapi import APIRouter, Depends

from surveydesk.core.registry import OrganizationRegistry, get_registry
from surveydesk.utils.coverage import region_sort_key, type_sort_key
from surveydesk.core.config import settings

router = APIRouter(prefix="/orgs", tags=["orgs"])


@router.get("")
def list_orgs(
    region: str = "",
    org_type: str = "",
    q: str = "",
    registry: OrganizationRegistry = Depends(get_registry),
):
    """Organization picker. Registry order is kept; filters are AND-ed."""
    orgs = registry.filter(region=region, organization_type=org_type, q=q)
    return {"total": len(orgs), "orgs": [o.to_dict() for o in orgs]}


@router.get("/filters")
def filters(registry: OrganizationRegistry = Depends(get_registry)):
    order = settings.region_order()
    return {
        "regions": sorted(registry.regions(), key=lambda r: region_sort_key(r, order)),
        "organization_types": sorted(registry.organization_types(), key=type_sort_key),
    }
