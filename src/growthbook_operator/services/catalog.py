"""Resource catalog reported in the status of an instance."""

from ..models.common import CustomResource, ResourceReference


def record(
    catalog: list[ResourceReference], resource: CustomResource
) -> list[ResourceReference]:
    """
    Add a resource to the catalog unless it is already listed.

    Entries are compared by kind, name and apiVersion. The catalog keeps the
    order in which resources were first recorded.
    """
    ref = resource.reference()
    if ref not in catalog:
        catalog.append(ref)
    return catalog
