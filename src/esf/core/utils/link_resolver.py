from urllib.parse import urljoin

from esf.core.models.result import Hit, ResultBundle


def resolve_reference(base_url: str, ref: str) -> str:
    """Resolve a reference returned by the search service against its base URL.

    Absolute http(s) references and empty strings are returned unchanged.
    """
    if not ref or ref.startswith("http://") or ref.startswith("https://"):
        return ref
    return urljoin(base_url.rstrip("/") + "/", ref.lstrip("/"))


def resolve_bundle_references(base_url: str, bundle: ResultBundle) -> ResultBundle:
    """Return a copy of `bundle` whose resource references are absolute."""
    hits = [
        Hit(title=hit.title, publication_link=resolve_reference(base_url, hit.publication_link))
        for hit in bundle.top_hits
    ]
    return bundle.model_copy(
        update={
            "tree_resource_ref": resolve_reference(base_url, bundle.tree_resource_ref),
            "full_result_ref": resolve_reference(base_url, bundle.full_result_ref),
            "top_hits": hits,
        }
    )
