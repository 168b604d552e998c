from typing import List

from pydantic import AliasChoices, BaseModel, Field

MAX_TOP_HITS = 10


class Hit(BaseModel):
    title: str
    publication_link: str = Field(
        validation_alias=AliasChoices("publicationLink", "publication_link", "link"),
    )


class ResultBundle(BaseModel):
    """Outcome of a completed search.

    `top_hits` keeps the relevance order reported by the service; it is never
    re-sorted here.
    """

    summary_text: str = Field(validation_alias=AliasChoices("response", "summary_text"))
    tree_resource_ref: str = Field(
        validation_alias=AliasChoices("treeImageRef", "tree_image", "tree_resource_ref"),
    )
    full_result_ref: str = Field(
        validation_alias=AliasChoices("fileRef", "file_url", "full_result_ref"),
    )
    top_hits: List[Hit] = Field(
        default_factory=list,
        max_length=MAX_TOP_HITS,
        validation_alias=AliasChoices("topHits", "top_hits"),
    )

    model_config = {"frozen": True}


class SubmissionPending(BaseModel):
    """Marker returned by the gateway when the submission was accepted but no
    result came back with the reply."""

    status_label: str | None = None
