import pytest
from virtualcorpus import Document, UnsupportedMutationError, VirtualCollection
from virtualcorpus.base_backend import Capabilities
from virtualcorpus.directory_backend import DirectoryBackend, DirectoryConfig
from virtualcorpus.policy import CollectionContext, MutationPolicy


def test_can_checks_follow_mode_and_capabilities():
    policy = MutationPolicy()
    writable = CollectionContext(read_only=False, capabilities=Capabilities(insert=False, delete=True, update=True))
    assert not policy.can_insert(writable)
    assert policy.can_delete(writable) and policy.can_update(writable)
    locked = CollectionContext(read_only=True, capabilities=Capabilities(insert=True, delete=True, update=True))
    assert not any(check(locked) for check in (policy.can_insert, policy.can_delete, policy.can_update))
    with pytest.raises(UnsupportedMutationError) as exc:
        policy.require(writable, 'insert', 'add')
    assert exc.value.reason == 'backend does not support insert'
    with pytest.raises(UnsupportedMutationError) as exc:
        policy.require(locked, 'update', 'save')
    assert exc.value.reason == 'collection is read-only'
    with pytest.raises(ValueError):
        policy.require(writable, 'rename', 'rename')


def test_overridden_check_is_enforced(corpus_dir):
    class NoSaves(MutationPolicy):
        def can_update(self, ctx):
            return False

    backend = DirectoryBackend(DirectoryConfig(root=str(corpus_dir), read_only=False))
    with VirtualCollection(backend, policy=NoSaves()) as c:
        doc = c.get(0)
        doc.text = 'changed'
        with pytest.raises(UnsupportedMutationError) as exc:
            c.save(doc)
        assert exc.value.operation == 'save'
        assert exc.value.reason == 'denied by policy'
        assert c.add(Document('d')) is True
    assert 'changed' not in (corpus_dir / 'a.xml').read_text(encoding='utf-8')
