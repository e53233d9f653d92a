from urllib.parse import parse_qs, urlparse

import pytest

from r2_uploader.core.exceptions import LinkIssuanceError
from r2_uploader.services.links import LINK_TTL_SECONDS, RetrievalLinkIssuer
from r2_uploader.storage import ObjectStore


def _real_store() -> ObjectStore:
    # Presigning is computed locally by botocore; no request is sent.
    return ObjectStore(
        endpoint_url="https://account.r2.cloudflarestorage.com",
        access_key_id="test-access",
        secret_access_key="test-secret",
        bucket="media",
        public_url="cdn.example.com",
    )


def test_link_is_valid_for_exactly_three_hours():
    issuer = RetrievalLinkIssuer(_real_store())
    url = issuer.issue("clip.mp4")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert LINK_TTL_SECONDS == 10_800
    assert query["X-Amz-Expires"] == ["10800"]
    assert parsed.path.endswith("/clip.mp4")
    assert query["response-content-disposition"] == ['attachment; filename="clip.mp4"']
    assert query["response-cache-control"] == ["public, max-age=31536000"]


def test_each_issue_signs_a_new_link(store):
    issuer = RetrievalLinkIssuer(store)

    first = issuer.issue("clip.mp4")
    second = issuer.issue("clip.mp4")

    assert first != second
    assert len(store.presign_calls) == 2
    assert all(call[1] == 10_800 for call in store.presign_calls)


def test_signing_failure_is_reported_as_link_issuance_error(store):
    store.fail_presign = True
    with pytest.raises(LinkIssuanceError):
        RetrievalLinkIssuer(store).issue("clip.mp4")


def test_empty_key_is_rejected(store):
    with pytest.raises(LinkIssuanceError):
        RetrievalLinkIssuer(store).issue("")
    assert store.presign_calls == []


def test_public_url_uses_public_domain():
    store = _real_store()
    assert store.public_url("clip.mp4") == "https://cdn.example.com/clip.mp4"
