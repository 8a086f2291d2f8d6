import os, sqlite3, gzip, pytest
from pathlib import Path

NAMES = ["a", "b", "c"]
TEXTS = {"a": "Alpha text", "b": "Bravo text", "c": "Charlie text"}


def xml_doc(text, **features):
    feats = "".join(
        f"<Feature><Name>{k}</Name><Value>{v}</Value></Feature>" for k, v in features.items()
    )
    return (f'<?xml version="1.0" encoding="UTF-8"?>'
            f"<Document><Features>{feats}</Features><TextWithNodes>{text}</TextWithNodes></Document>")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Default mode comes from ALLOW_WRITES; keep tests independent of the caller's shell
    monkeypatch.delenv('ALLOW_WRITES', raising=False)
    monkeypatch.delenv('VIRTUALCORPUS_CACHE_KIB', raising=False)
    monkeypatch.delenv('VIRTUALCORPUS_BUSY_TIMEOUT_MS', raising=False)
    monkeypatch.delenv('LOG_LEVEL', raising=False)


@pytest.fixture()
def corpus_dir(tmp_path):
    root = tmp_path / 'corpus'
    root.mkdir()
    for name in NAMES:
        (root / f'{name}.xml').write_text(xml_doc(TEXTS[name], source=name), encoding='utf-8')
    return root


@pytest.fixture()
def corpus_db(tmp_path):
    db_path = tmp_path / 'corpus.db'
    conn = sqlite3.connect(db_path)
    try:
        with conn:
            conn.execute("CREATE TABLE docs (name TEXT, content TEXT)")
            conn.executemany("INSERT INTO docs(name, content) VALUES (?, ?)",
                             [(n, xml_doc(TEXTS[n], source=n)) for n in NAMES])
    finally:
        conn.close()
    return db_path


@pytest.fixture()
def gzip_db(tmp_path):
    db_path = tmp_path / 'packed.db'
    conn = sqlite3.connect(db_path)
    try:
        with conn:
            conn.execute("CREATE TABLE packed (id TEXT PRIMARY KEY, body BLOB)")
            conn.executemany("INSERT INTO packed(id, body) VALUES (?, ?)",
                             [(n, gzip.compress(xml_doc(TEXTS[n]).encode('utf-8'))) for n in NAMES])
    finally:
        conn.close()
    return db_path


def db_rows(db_path, table='docs', name_col='name', content_col='content'):
    conn = sqlite3.connect(db_path)
    try:
        return dict(conn.execute(f"SELECT {name_col}, {content_col} FROM {table}").fetchall())
    finally:
        conn.close()
