import pytest
from virtualcorpus import Document, UnsupportedMutationError, open_database, open_directory
from conftest import db_rows


@pytest.fixture()
def ro_coll(corpus_dir):
    c = open_directory(str(corpus_dir), read_only=True)
    yield c
    c.close()


def test_mutations_rejected_without_side_effects(ro_coll, corpus_dir):
    loaded = ro_coll.get(0)
    before = {p.name: p.read_text(encoding='utf-8') for p in corpus_dir.iterdir()}
    with pytest.raises(UnsupportedMutationError):
        ro_coll.add(Document('d'))
    with pytest.raises(UnsupportedMutationError):
        ro_coll.remove_at(0)
    with pytest.raises(UnsupportedMutationError):
        ro_coll.remove(Document('b'))
    with pytest.raises(UnsupportedMutationError):
        ro_coll.clear()
    assert ro_coll.size() == 3
    assert ro_coll.get(0) is loaded
    assert not ro_coll.is_loaded(1)
    assert {p.name: p.read_text(encoding='utf-8') for p in corpus_dir.iterdir()} == before


def test_rejection_is_logged(ro_coll, capsys):
    with pytest.raises(UnsupportedMutationError) as exc:
        ro_coll.add(Document('d'))
    assert exc.value.operation == 'add'
    assert 'read-only' in str(exc.value)
    assert isinstance(exc.value, NotImplementedError)
    assert 'mutation_rejected' in capsys.readouterr().err


def test_save_is_a_noop(ro_coll, corpus_dir):
    doc = ro_coll.get(2)
    doc.text = 'not persisted'
    assert ro_coll.save(doc) is False
    assert 'not persisted' not in (corpus_dir / 'c.xml').read_text(encoding='utf-8')


def test_read_only_database_save_is_noop(corpus_db):
    with open_database('docs', 'name', 'content', url=str(corpus_db), read_only=True) as c:
        doc = c.get(0)
        doc.text = 'ignored'
        assert c.save(doc) is False
    assert 'ignored' not in db_rows(corpus_db)['a']


def test_allow_writes_env_default(corpus_dir, monkeypatch):
    with open_directory(str(corpus_dir)) as c:
        assert c.read_only
    monkeypatch.setenv('ALLOW_WRITES', '1')
    with open_directory(str(corpus_dir)) as c:
        assert not c.read_only
        assert c.add(Document('d', text='env enabled')) is True
