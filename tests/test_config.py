import pytest
from pydantic import ValidationError

from guide_writer.config import Config, PipelineConfig, RevisionConfig


def test_default_config():
    config = Config()
    assert config.retry.max_attempts == 3
    assert config.retry.backoff_ms == 1000
    assert config.revision.max_attempts == 3
    assert config.revision.approval_threshold == 90
    assert config.pipeline.max_parallel_chapters == 1
    assert config.pipeline.history_digest_chars == 1000


def test_config_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
generation:
  model: qwen-plus
revision:
  approval_threshold: 85
pipeline:
  max_parallel_chapters: 4
""")

    config = Config.from_yaml(config_file)
    assert config.generation.model == "qwen-plus"
    assert config.revision.approval_threshold == 85
    assert config.pipeline.max_parallel_chapters == 4
    assert config.retry.max_attempts == 3


def test_empty_yaml_gives_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    assert Config.from_yaml(config_file) == Config()


def test_config_validation():
    with pytest.raises(ValidationError):
        Config(revision=RevisionConfig(approval_threshold=120))
    with pytest.raises(ValidationError):
        Config(pipeline=PipelineConfig(max_parallel_chapters=0))


def test_config_to_yaml(tmp_path):
    config = Config(pipeline=PipelineConfig(research_limit=8))
    output_file = tmp_path / "output.yaml"

    config.to_yaml(output_file)

    assert output_file.exists()
    loaded_config = Config.from_yaml(output_file)
    assert loaded_config.pipeline.research_limit == 8
