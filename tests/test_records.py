"""Tests for the JSON records used at the CLI boundary."""

from __future__ import annotations

import pytest
import torch
import ujson

from colbert_infer import OperationError, UpstreamError
from colbert_infer.data import EncodeInput, EncodeOutput, PoolingInput, Similarities, SimilarityInput


class TestFromJson:
    def test_encode_input(self) -> None:
        params = EncodeInput.from_json('{"sentences": ["a", "b"], "batch_size": 4}')
        assert params.sentences == ["a", "b"]
        assert params.batch_size == 4

    def test_optional_field_defaults(self) -> None:
        assert EncodeInput.from_json('{"sentences": ["a"]}').batch_size is None

    def test_unknown_keys_are_ignored(self) -> None:
        params = SimilarityInput.from_json(b'{"queries": ["q"], "documents": ["d"], "extra": 1}')
        assert params.queries == ["q"]
        assert params.documents == ["d"]

    def test_missing_field_raises(self) -> None:
        with pytest.raises(OperationError, match="documents"):
            SimilarityInput.from_json('{"queries": ["q"]}')

    def test_non_object_raises(self) -> None:
        with pytest.raises(OperationError, match="JSON object"):
            PoolingInput.from_json("[1, 2, 3]")

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(UpstreamError, match="JSON Parsing"):
            EncodeInput.from_json("{")


class TestToJson:
    def test_similarities_cast(self) -> None:
        scores = Similarities.cast(torch.tensor([[1.5, 2.0]]))
        assert ujson.loads(scores.to_json()) == {"data": [[1.5, 2.0]]}

    def test_encode_output_cast(self) -> None:
        output = EncodeOutput.cast(torch.ones(1, 2, 3))
        assert ujson.loads(output.to_json())["embeddings"] == [[[1.0] * 3] * 2]
