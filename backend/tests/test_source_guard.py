"""
RecipeShelf Backend: Size/Type Guard Unit Tests
================================================

What:  Guard outcomes from object metadata alone.
"""

import pytest

from recipeshelf.exceptions import SourceTooLargeError
from recipeshelf.schemas.media import GuardDecision, ObjectMetadata
from recipeshelf.services.source_guard import MAX_SOURCE_BYTES, check_pixel_budget, inspect_source
from recipeshelf.services.thumbnail_params import parse_thumbnail_request


@pytest.fixture
def request_value():
    return parse_thumbnail_request("uploads/a.jpg")


class TestInspectSource:

    def test_ceiling_is_fifteen_mebibytes(self):
        assert MAX_SOURCE_BYTES == 15 * 1024 * 1024

    def test_one_byte_over_ceiling_rejected(self, request_value):
        metadata = ObjectMetadata(content_type="image/jpeg", size_bytes=MAX_SOURCE_BYTES + 1)
        with pytest.raises(SourceTooLargeError) as exc_info:
            inspect_source(metadata, request_value)
        assert exc_info.value.context["size_bytes"] == MAX_SOURCE_BYTES + 1

    def test_exactly_at_ceiling_allowed(self, request_value):
        metadata = ObjectMetadata(content_type="image/jpeg", size_bytes=MAX_SOURCE_BYTES)
        assert inspect_source(metadata, request_value) is GuardDecision.TRANSFORM

    def test_oversized_non_image_still_rejected(self, request_value):
        metadata = ObjectMetadata(content_type="application/pdf", size_bytes=MAX_SOURCE_BYTES + 1)
        with pytest.raises(SourceTooLargeError):
            inspect_source(metadata, request_value)

    @pytest.mark.parametrize("content_type", ["application/pdf", "text/plain", "application/octet-stream", "video/mp4"])
    def test_non_image_passthrough(self, request_value, content_type):
        metadata = ObjectMetadata(content_type=content_type, size_bytes=1024)
        assert inspect_source(metadata, request_value) is GuardDecision.PASSTHROUGH

    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "image/webp", "IMAGE/GIF"])
    def test_images_transformed(self, request_value, content_type):
        metadata = ObjectMetadata(content_type=content_type, size_bytes=1024)
        assert inspect_source(metadata, request_value) is GuardDecision.TRANSFORM

    def test_unknown_size_image_transformed(self, request_value):
        metadata = ObjectMetadata(content_type="image/jpeg")
        assert metadata.size_bytes is None
        assert inspect_source(metadata, request_value) is GuardDecision.TRANSFORM

    def test_unknown_size_non_image_passthrough(self, request_value):
        metadata = ObjectMetadata(content_type="application/pdf")
        assert inspect_source(metadata, request_value) is GuardDecision.PASSTHROUGH


class TestPixelBudget:

    def test_within_budget(self):
        check_pixel_budget((1000, 1000), 1_000_000, "/objects/a.jpg")

    def test_over_budget(self):
        with pytest.raises(SourceTooLargeError, match="dimensions too large"):
            check_pixel_budget((1001, 1000), 1_000_000, "/objects/a.jpg")
