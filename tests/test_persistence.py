import json
import pytest
from virtualcorpus import ConfigurationError, Document, open_database, open_directory
from virtualcorpus.database_backend import DatabaseConfig
from virtualcorpus.directory_backend import DirectoryConfig
from virtualcorpus.persistence import (
    config_from_dict, config_to_dict, dump_collection, load_collection,
)


def test_directory_collection_reloads_equivalently(corpus_dir):
    with open_directory(str(corpus_dir), pattern='*.xml', read_only=True) as c:
        c.get(0)
        text = dump_collection(c)
        label = c.label
    data = json.loads(text)
    assert data['kind'] == 'directory'
    assert data['params']['pattern'] == '*.xml'
    assert 'Alpha text' not in text  # documents are never serialized
    with load_collection(text) as again:
        assert again.names() == ['a', 'b', 'c']
        assert again.label == label
        assert not again.is_loaded(0)
        assert again.read_only


def test_database_collection_reloads_equivalently(corpus_db):
    with open_database('docs', 'name', 'content', url=str(corpus_db),
                       compress=False, read_only=True) as c:
        text = dump_collection(c)
    with load_collection(text) as again:
        assert isinstance(again.config, DatabaseConfig)
        assert again.config.table == 'docs'
        assert again.get(2).text == 'Charlie text'


def test_config_dict_round_trip():
    cfg = DirectoryConfig(root='/data/corpus', recursive=True, read_only=None)
    assert config_from_dict(config_to_dict(cfg)) == cfg


@pytest.mark.parametrize('data', [
    {'kind': 'ftp', 'params': {}},
    {'kind': 'directory', 'params': {'root': '/x', 'colour': 'red'}},
    {'kind': 'database', 'params': {'table': 'docs'}},
    {'kind': 'directory', 'version': 99, 'params': {'root': '/x'}},
])
def test_invalid_configs(data):
    with pytest.raises(ConfigurationError):
        config_from_dict(data)


def test_invalid_json():
    with pytest.raises(ConfigurationError):
        load_collection('{not json')
    with pytest.raises(ConfigurationError):
        load_collection('[1, 2]')


def test_reload_keeps_resolved_write_mode(corpus_dir, monkeypatch):
    monkeypatch.setenv('ALLOW_WRITES', '1')
    with open_directory(str(corpus_dir)) as c:
        assert not c.read_only
        text = dump_collection(c)
    assert json.loads(text)['params']['read_only'] is False
    monkeypatch.delenv('ALLOW_WRITES')
    with load_collection(text) as again:
        assert not again.read_only
        assert again.add(Document('d')) is True
    assert (corpus_dir / 'd.xml').exists()


def test_reload_with_relative_paths_after_chdir(corpus_dir, corpus_db, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with open_directory('corpus', read_only=True) as c:
        dir_text = dump_collection(c)
    with open_database('docs', 'name', 'content', url='corpus.db', read_only=True) as c:
        db_text = dump_collection(c)
    with open_database('docs', 'name', 'content', url='${dbdirectory}/corpus.db',
                       db_directory='.', read_only=True) as c:
        placeholder_text = dump_collection(c)
    elsewhere = tmp_path / 'elsewhere'
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    with load_collection(dir_text) as again:
        assert again.names() == ['a', 'b', 'c']
        assert again.get(0).text == 'Alpha text'
    with load_collection(db_text) as again:
        assert again.get(1).text == 'Bravo text'
    with load_collection(placeholder_text) as again:
        assert again.config.url == '${dbdirectory}/corpus.db'
        assert again.get(2).text == 'Charlie text'
