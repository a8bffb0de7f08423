"""Tests for ColBERTConfig defaults, loading and merge precedence."""

from __future__ import annotations

import os

import pytest
import ujson

from colbert_infer import ColBERTConfig, ConfigurationError, UpstreamError

from .conftest import DOCUMENT_LENGTH, QUERY_LENGTH


class TestDefaults:
    def test_default_values(self) -> None:
        config = ColBERTConfig()
        assert config.query_prefix == "[Q]"
        assert config.document_prefix == "[D]"
        assert config.query_length == 32
        assert config.document_length == 180
        assert config.mask_token == "[MASK]"
        assert config.do_query_expansion is True
        assert config.attend_to_expansion_tokens is False
        assert config.batch_size == 32

    def test_defaults_are_not_marked_assigned(self) -> None:
        assert ColBERTConfig().assigned == {}

    def test_explicit_values_are_marked_assigned(self) -> None:
        config = ColBERTConfig(query_length=12, do_query_expansion=False)
        assert set(config.assigned) == {"query_length", "do_query_expansion"}

    def test_device_resolves_to_cpu(self) -> None:
        assert ColBERTConfig(device="cpu").device_.type == "cpu"

    def test_num_workers_falls_back_to_torch_threads(self) -> None:
        import torch

        assert ColBERTConfig().num_workers_ == torch.get_num_threads()
        assert ColBERTConfig(num_workers=3).num_workers_ == 3


class TestAttendToExpansionTokens:
    def test_forced_off_without_query_expansion(self) -> None:
        config = ColBERTConfig(do_query_expansion=False, attend_to_expansion_tokens=True)
        assert config.attend_to_expansion_tokens_ is False

    def test_kept_with_query_expansion(self) -> None:
        config = ColBERTConfig(do_query_expansion=True, attend_to_expansion_tokens=True)
        assert config.attend_to_expansion_tokens_ is True


class TestSet:
    def test_set_known_key(self) -> None:
        config = ColBERTConfig()
        config.set("query_length", 4)
        assert config.query_length == 4
        assert config.assigned["query_length"] is True

    def test_set_unknown_key_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="not_a_setting"):
            ColBERTConfig().set("not_a_setting", 1)

    def test_configure_reports_ignored_keys(self) -> None:
        ignored = ColBERTConfig().configure(query_length=4, bogus=True)
        assert ignored == {"bogus"}


class TestFromExisting:
    def test_later_sources_override_earlier(self) -> None:
        base = ColBERTConfig(query_length=10, document_length=20)
        override = ColBERTConfig(query_length=5)
        merged = ColBERTConfig.from_existing(base, override)
        assert merged.query_length == 5
        assert merged.document_length == 20

    def test_unassigned_fields_do_not_override(self) -> None:
        base = ColBERTConfig(query_length=10)
        merged = ColBERTConfig.from_existing(base, ColBERTConfig())
        assert merged.query_length == 10

    def test_none_sources_are_skipped(self) -> None:
        merged = ColBERTConfig.from_existing(None, ColBERTConfig(batch_size=4), None)
        assert merged.batch_size == 4


class TestCheckpointDocuments:
    def test_reads_sentence_transformers_keys(self) -> None:
        config = ColBERTConfig.from_checkpoint_documents(
            {"query_prefix": "[unused0]", "query_length": 48, "similarity_fn_name": "MaxSim"}, None
        )
        assert config.query_prefix == "[unused0]"
        assert config.query_length == 48
        assert set(config.assigned) == {"query_prefix", "query_length"}

    def test_mask_token_as_string(self) -> None:
        config = ColBERTConfig.from_checkpoint_documents(None, {"mask_token": "<mask>"})
        assert config.mask_token == "<mask>"

    def test_mask_token_as_object(self) -> None:
        config = ColBERTConfig.from_checkpoint_documents(None, {"mask_token": {"content": "<mask>", "lstrip": True}})
        assert config.mask_token == "<mask>"

    def test_pad_token_as_object(self) -> None:
        config = ColBERTConfig.from_checkpoint_documents(None, {"pad_token": {"content": "<pad>"}})
        assert config.pad_token == "<pad>"
        assert ColBERTConfig().pad_token is None

    def test_load_from_model_dir(self, model_dir: str) -> None:
        config = ColBERTConfig.load_from_checkpoint(model_dir)
        assert config.query_length == QUERY_LENGTH
        assert config.document_length == DOCUMENT_LENGTH

    def test_load_from_dir_without_documents(self, tmp_path) -> None:
        assert ColBERTConfig.load_from_checkpoint(str(tmp_path)) is None

    def test_invalid_json_raises_upstream_error(self, tmp_path) -> None:
        (tmp_path / "config_sentence_transformers.json").write_text("{not json")
        with pytest.raises(UpstreamError, match="JSON Parsing"):
            ColBERTConfig.load_from_checkpoint(str(tmp_path))

    def test_user_config_wins_over_model_dir(self, model_dir: str) -> None:
        merged = ColBERTConfig.from_existing(ColBERTConfig.load_from_checkpoint(model_dir),
                                             ColBERTConfig(query_length=4))
        assert merged.query_length == 4
        assert merged.document_length == DOCUMENT_LENGTH


class TestSaveAndLoad:
    def test_save_then_from_path(self, tmp_path) -> None:
        path = os.path.join(str(tmp_path), "colbert.json")
        ColBERTConfig(query_length=7, mask_token="<mask>").save(path)

        with open(path) as f:
            assert ujson.load(f)["query_length"] == 7

        loaded, ignored = ColBERTConfig.from_path(path)
        assert loaded.query_length == 7
        assert loaded.mask_token == "<mask>"
        assert ignored == set()
