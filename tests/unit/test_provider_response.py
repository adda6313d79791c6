"""Unit tests for embedding provider response parsing"""

import pytest
from pydantic import ValidationError

from knowledge_base.models.provider_response import (
    EmptyEmbedResponse,
    FlatEmbedResponse,
    TypedEmbedResponse,
    parse_embed_response,
)


class TestParseEmbedResponse:
    """Test both response shapes normalize to the same vectors"""

    def test_flat_shape(self):
        parsed = parse_embed_response({"embeddings": [[0.1, 0.2], [0.3, 0.4]], "id": "x"})

        assert isinstance(parsed, FlatEmbedResponse)
        assert parsed.vectors() == [[0.1, 0.2], [0.3, 0.4]]

    def test_typed_shape(self):
        parsed = parse_embed_response(
            {"embeddings": {"float": [[0.1, 0.2], [0.3, 0.4]]}, "meta": {"api_version": "2"}}
        )

        assert isinstance(parsed, TypedEmbedResponse)
        assert parsed.vectors() == [[0.1, 0.2], [0.3, 0.4]]

    @pytest.mark.parametrize(
        "payload",
        [{}, {"id": "x"}, {"embeddings": None}, {"embeddings": {"int8": [[1, 2]]}}],
    )
    def test_unrecognized_shapes_are_empty(self, payload):
        parsed = parse_embed_response(payload)

        assert isinstance(parsed, EmptyEmbedResponse)
        assert parsed.vectors() == []

    def test_empty_flat_list(self):
        assert parse_embed_response({"embeddings": []}).vectors() == []

    def test_malformed_vectors_rejected(self):
        with pytest.raises(ValidationError):
            parse_embed_response({"embeddings": {"float": "not-a-list"}})
