import re

import pytest

from regpay.core.config import settings
from regpay.utils import r2
from regpay.utils.errors import PublishFailure


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "R2_ACCOUNT_ID", "acct")
    monkeypatch.setattr(settings, "R2_ACCESS_KEY_ID", "key")
    monkeypatch.setattr(settings, "R2_SECRET_ACCESS_KEY", "secret")
    monkeypatch.setattr(settings, "R2_BUCKET", "receipts")
    monkeypatch.setattr(settings, "R2_S3_ENDPOINT", "")
    monkeypatch.setattr(settings, "R2_PUBLIC_BASE_URL", "https://cdn.gosa.test")


class FakeS3:
    def __init__(self):
        self.calls = []

    def put_object(self, **kwargs):
        self.calls.append(kwargs)
        return {"ETag": "x"}


def test_build_key_is_dated_and_safe():
    key = r2.build_key("brochure receipt/BROCH_1?.pdf", "application/pdf")

    assert re.fullmatch(r"receipts/\d{4}/\d{2}/[0-9a-f]{12}-[A-Za-z0-9._-]+\.pdf", key)


def test_guess_extension_from_content_type():
    assert r2.guess_extension("receipt", "application/pdf") == ".pdf"
    assert r2.guess_extension("photo.PNG", None) == ".png"
    assert r2.guess_extension(None, "text/plain") == ""


def test_publish_requires_configuration(monkeypatch):
    monkeypatch.setattr(settings, "R2_BUCKET", "")

    with pytest.raises(PublishFailure):
        r2.publish(b"%PDF", "x.pdf")


def test_publish_rejects_empty_data(configured):
    with pytest.raises(PublishFailure):
        r2.publish(b"", "x.pdf")


def test_publish_uploads_and_returns_public_url(configured, monkeypatch):
    s3 = FakeS3()
    monkeypatch.setattr(r2, "_client", lambda cfg: s3)

    published = r2.publish(b"%PDF-1.4", "donation-receipt-DON_1.pdf")

    call = s3.calls[0]
    assert call["Bucket"] == "receipts"
    assert call["ContentType"] == "application/pdf"
    assert call["Key"] == published["key"]
    assert published["url"] == f"https://cdn.gosa.test/{published['key']}"
    assert published["key"].endswith("-donation-receipt-DON_1.pdf")


def test_endpoint_derived_from_account_id(configured):
    cfg = r2.R2Config()

    assert cfg.endpoint_url == "https://acct.r2.cloudflarestorage.com"
    assert cfg.is_configured()
