"""Document formats keyed by mime type.

Each format turns raw text into a Document and back. The native format is a
small XML dialect; XML is parsed with lxml using a parser that never touches
the network and never resolves entities.
"""
from __future__ import annotations
import json
from typing import Any, Dict, Optional

from lxml import etree

from .document import Document, DEFAULT_MIME_TYPE
from .errors import ConfigurationError


class _NoEntityResolver(etree.Resolver):
    def resolve(self, url, id, context):
        return self.resolve_string('', context)


def _create_parser() -> etree.XMLParser:
    # Text is handed over as UTF-8 bytes whatever the declaration claims
    parser = etree.XMLParser(resolve_entities=False, no_network=True, encoding='utf-8')
    parser.resolvers.add(_NoEntityResolver())
    return parser


class XmlFormat:
    mime_types = ("application/xml", "text/xml")

    def decode(self, name: str, text: str, mime_type: str, encoding: str) -> Document:
        # lxml refuses str input carrying an encoding declaration
        root = etree.fromstring(text.encode('utf-8'), parser=_create_parser())
        if root.tag != "Document":
            raise ValueError(f"{name}: expected <Document> root, got <{root.tag}>")
        features: Dict[str, Any] = {}
        for feat in root.iterfind("Features/Feature"):
            key = feat.findtext("Name") or ""
            value_el = feat.find("Value")
            features[key] = _xml_value(value_el)
        body = root.find("TextWithNodes")
        content = "" if body is None else "".join(body.itertext())
        return Document(name=name, text=content, features=features,
                        mime_type=mime_type, encoding=encoding)

    def encode(self, document: Document) -> str:
        root = etree.Element("Document")
        feats = etree.SubElement(root, "Features")
        for key, value in document.features.items():
            feat = etree.SubElement(feats, "Feature")
            etree.SubElement(feat, "Name").text = str(key)
            val = etree.SubElement(feat, "Value")
            if isinstance(value, str):
                val.text = value
            else:
                val.set("type", "json")
                val.text = json.dumps(value)
        etree.SubElement(root, "TextWithNodes").text = document.text
        return etree.tostring(root, xml_declaration=False, encoding='unicode')


def _xml_value(el) -> Any:
    if el is None:
        return None
    if el.get("type") == "json":
        return json.loads(el.text or "null")
    return el.text or ""


class PlainTextFormat:
    mime_types = ("text/plain",)

    def decode(self, name: str, text: str, mime_type: str, encoding: str) -> Document:
        return Document(name=name, text=text, mime_type=mime_type, encoding=encoding)

    def encode(self, document: Document) -> str:
        return document.text


class JsonFormat:
    mime_types = ("application/json",)

    def decode(self, name: str, text: str, mime_type: str, encoding: str) -> Document:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{name}: expected a JSON object")
        return Document(name=name, text=data.get("text", ""), features=dict(data.get("features") or {}),
                        mime_type=mime_type, encoding=encoding)

    def encode(self, document: Document) -> str:
        return json.dumps({"text": document.text, "features": document.features}, ensure_ascii=False)


_FORMATS = {}
for _fmt in (XmlFormat(), PlainTextFormat(), JsonFormat()):
    for _mt in _fmt.mime_types:
        _FORMATS[_mt] = _fmt

EXTENSION_MIME_TYPES = {
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".json": "application/json",
}


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Empty means the native format; parameters after ';' are dropped."""
    if not mime_type:
        return DEFAULT_MIME_TYPE
    return mime_type.split(";", 1)[0].strip().lower()


def get_format(mime_type: Optional[str]):
    mt = normalize_mime_type(mime_type)
    try:
        return _FORMATS[mt]
    except KeyError:
        raise ConfigurationError(f"Unsupported mime type: {mime_type!r}") from None


def mime_type_for_suffix(suffix: str, default: Optional[str] = None) -> str:
    return EXTENSION_MIME_TYPES.get(suffix.lower(), normalize_mime_type(default))


def decode_document(name: str, text: str, mime_type: Optional[str], encoding: str) -> Document:
    mt = normalize_mime_type(mime_type)
    return get_format(mt).decode(name, text, mt, encoding)


def encode_document(document: Document) -> str:
    return get_format(document.mime_type).encode(document)
