import pytest

from mongomanager import ReviewMirror, create_mirror
from schemas.review_schemas import ReviewSubmissionSchema


class FakeCollection:
    def __init__(self, fail=False):
        self.documents = []
        self.fail = fail

    async def insert_one(self, document):
        if self.fail:
            raise RuntimeError("connection refused")
        self.documents.append(document)


def test_mirror_is_disabled_without_url():
    assert create_mirror(None) is None
    assert create_mirror("") is None


@pytest.mark.asyncio
async def test_mirror_stores_pending_copy(submission_payload):
    mirror = ReviewMirror("mongodb://localhost:27017")
    mirror.reviews_collection = FakeCollection()

    await mirror.save_review(ReviewSubmissionSchema(**submission_payload), "gid://shopify/Metaobject/1",
                             "gid://shopify/MediaImage/2")

    document = mirror.reviews_collection.documents[0]
    assert document["shopifyProductId"] == submission_payload["productId"]
    assert document["shopifyMetaobjectId"] == "gid://shopify/Metaobject/1"
    assert document["isApproved"] is False
    assert document["imageUrl"] == "gid://shopify/MediaImage/2"
    mirror.close()


@pytest.mark.asyncio
async def test_mirror_failures_are_swallowed(submission_payload):
    mirror = ReviewMirror("mongodb://localhost:27017")
    mirror.reviews_collection = FakeCollection(fail=True)

    await mirror.save_review(ReviewSubmissionSchema(**submission_payload), "gid://shopify/Metaobject/1")
    mirror.close()
