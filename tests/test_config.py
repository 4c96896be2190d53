"""sumgo.toml loading."""

import pytest

from sumgo.compiler.config import (
    CONFIG_NAME,
    ConfigError,
    SumgoConfig,
    find_config,
    load_config,
    load_config_from_string,
)


class TestDefaults:
    def test_defaults(self):
        config = SumgoConfig()
        assert config.match.guard_keywords == ["where", "if"]
        assert config.match.max_nesting_depth == 2
        assert config.match.non_exhaustive == "panic"
        assert config.codegen.indent == "\t"
        assert config.codegen.tag_type == "uint8"
        assert config.codegen.helpers and config.codegen.markers
        assert config.sourcemaps.enabled
        assert config.path is None and config.unknown_keys == []

    def test_no_path_means_defaults(self):
        assert load_config(None) == SumgoConfig()

    def test_empty_file(self):
        assert load_config_from_string("") == SumgoConfig()


class TestLoading:
    def test_every_key(self):
        config = load_config_from_string(
            '[match]\n'
            'guard_keywords = ["when"]\n'
            'max_nesting_depth = 3\n'
            'non_exhaustive = "error"\n'
            '[codegen]\n'
            'indent = "  "\n'
            'tag_type = "uint16"\n'
            'helpers = false\n'
            'markers = false\n'
            '[sourcemaps]\n'
            'enabled = false\n'
        )
        assert config.match.guard_keywords == ["when"]
        assert config.match.max_nesting_depth == 3
        assert config.match.non_exhaustive == "error"
        assert config.codegen.indent == "  "
        assert config.codegen.tag_type == "uint16"
        assert not config.codegen.helpers and not config.codegen.markers
        assert not config.sourcemaps.enabled

    def test_unknown_keys_are_collected(self):
        config = load_config_from_string("[match]\nfoo = 1\n[extra]\nx = 1\n")
        assert config.unknown_keys == ["match.foo", "extra"]
        assert config.match == SumgoConfig().match

    def test_file(self, tmp_path):
        path = tmp_path / CONFIG_NAME
        path.write_text('[match]\nnon_exhaustive = "error"\n')
        config = load_config(path)
        assert config.match.non_exhaustive == "error"
        assert config.path == path

    def test_find_config(self, tmp_path):
        assert find_config(tmp_path) is None
        (tmp_path / CONFIG_NAME).write_text("")
        assert find_config(tmp_path) == tmp_path / CONFIG_NAME


class TestInvalid:
    @pytest.mark.parametrize("text", [
        '[match]\nnon_exhaustive = "ignore"\n',
        "[match]\nmax_nesting_depth = 0\n",
        "[match]\nguard_keywords = []\n",
        '[match]\nguard_keywords = "if"\n',
        '[match]\nguard_keywords = ["else if"]\n',
        '[codegen]\ntag_type = "uint64"\n',
        '[codegen]\nindent = "x"\n',
        "match = 1\n",
        "[match\n",
    ])
    def test_rejected(self, text):
        with pytest.raises(ConfigError):
            load_config_from_string(text)

    def test_message_names_the_choices(self):
        with pytest.raises(ConfigError, match="panic, error"):
            load_config_from_string('[match]\nnon_exhaustive = "ignore"\n')

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path / "missing.toml")
