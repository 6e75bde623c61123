"""
Tests for the package layer: zip store, relationship and content-type
registries, media naming, placeholder listing and the CLI.

Run: python3 test_package.py
From: python/
"""

import json
import os
import sys
import tempfile
import zipfile
from contextlib import redirect_stdout
from io import BytesIO, StringIO

sys.path.insert(0, '.')

from lxml import etree
from docx import Document

from docfill import cli, fill_stream, fill_template, list_placeholders
from docfill.api import document_parts
from docfill.errors import InputNotFound, MediaFileMissing, PackageOpenFailed, RequiredPartMissing, XmlParseFailed
from docfill.models import ImageSpec
from docfill.package.context import ContentTypeRegistry, PackageContext, content_type_for, rels_part_name
from docfill.package.store import PackageStore

REL = '{http://schemas.openxmlformats.org/package/2006/relationships}'
CT = '{http://schemas.openxmlformats.org/package/2006/content-types}'
IMAGE_REL = 'http://schemas.openxmlformats.org/officeDocument/2006/relationships/image'

TYPES_XML = b'<?xml version="1.0" encoding="UTF-8"?><Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types"/>'
RELS_XML = b'<?xml version="1.0" encoding="UTF-8"?><Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships"/>'


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _docx_bytes(*paragraphs):
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()


def _zip_bytes(entries):
    buf = BytesIO()
    with zipfile.ZipFile(buf, 'w') as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def _image(path):
    return ImageSpec.model_validate({"image": path})


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

def test_rels_part_name():
    assert rels_part_name('word/document.xml') == 'word/_rels/document.xml.rels'
    assert rels_part_name('word/header1.xml') == 'word/_rels/header1.xml.rels'
    print("PASS: test_rels_part_name")


def test_content_type_lookup():
    assert content_type_for('PNG') == 'image/png'
    assert content_type_for('jpg') == 'image/jpeg'
    assert content_type_for('zzunknown') == 'application/octet-stream'
    print("PASS: test_content_type_lookup")


def test_content_type_defaults_are_not_duplicated():
    root = etree.fromstring(
        b'<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        b'<Default Extension="PNG" ContentType="image/png"/></Types>'
    )
    registry = ContentTypeRegistry(root)
    assert registry.add_default('png', 'image/png') is False
    assert registry.dirty is False
    assert registry.add_default('gif', 'image/gif') is True
    assert registry.add_default('GIF', 'image/gif') is False
    extensions = [d.get('Extension') for d in root.findall(f'{CT}Default')]
    assert extensions == ['PNG', 'gif']
    print("PASS: test_content_type_defaults_are_not_duplicated")


def test_relationship_id_skips_existing():
    store = PackageStore.from_bytes(_docx_bytes("x"))
    rels = etree.fromstring(store.read('word/_rels/document.xml.rels'))
    etree.SubElement(rels, f'{REL}Relationship', Id='rIdImg1', Type=IMAGE_REL, Target='media/old.png')
    store.replace('word/_rels/document.xml.rels', etree.tostring(rels))

    context = PackageContext(store)
    reg = context.register_image('word/document.xml', _image('/tmp/new.png'))
    assert reg.rel_id == 'rIdImg2'
    assert context.relationships_for('word/document.xml').targets()['rIdImg2'] == 'media/image1.png'
    print("PASS: test_relationship_id_skips_existing")


def test_media_names_avoid_existing_entries():
    store = PackageStore.from_bytes(_docx_bytes("x"))
    store.add('word/media/image1.png', b'existing')
    context = PackageContext(store)
    assert context.register_image('word/document.xml', _image('/tmp/a.png')).media_name == 'image2.png'
    assert context.register_image('word/document.xml', _image('/tmp/b.PNG')).media_name == 'image3.png'

    first = context.register_image('word/document.xml', _image('/tmp/c.jpg'), group_base='photos')
    second = context.register_image('word/document.xml', _image('/tmp/d.jpg'), group_base='photos')
    assert (first.media_name, second.media_name) == ('photos-1.jpg', 'photos-2.jpg')
    print("PASS: test_media_names_avoid_existing_entries")


def test_drawing_ids_continue_after_existing():
    store = PackageStore.from_bytes(_docx_bytes("x"))
    context = PackageContext(store)
    root = etree.fromstring(
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main" '
        'xmlns:wp="http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing">'
        '<wp:docPr id="7" name="a"/><wp:docPr id="3" name="b"/></w:document>'
    )
    context.observe_drawing_ids(root)
    assert context.register_image('word/document.xml', _image('/tmp/a.png')).drawing_id == 8
    print("PASS: test_drawing_ids_continue_after_existing")


def test_flush_checks_media_before_writing():
    store = PackageStore.from_bytes(_docx_bytes("x"))
    context = PackageContext(store)
    context.register_image('word/header1.xml', _image('/nonexistent/logo.png'))
    try:
        context.flush()
    except MediaFileMissing:
        pass
    else:
        raise AssertionError("expected MediaFileMissing")
    assert store.changed_entries == []
    print("PASS: test_flush_checks_media_before_writing")


def test_flush_creates_part_relationships():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, 'logo.gif')
        with open(path, 'wb') as f:
            f.write(b'GIF89a')
        store = PackageStore.from_bytes(_docx_bytes("x"))
        context = PackageContext(store)
        reg = context.register_image('word/header1.xml', _image(path))
        context.flush()

    assert store.has('word/_rels/header1.xml.rels')
    rels = etree.fromstring(store.read('word/_rels/header1.xml.rels'))
    ids = [r.get('Id') for r in rels.findall(f'{REL}Relationship')]
    assert ids == [reg.rel_id]
    assert store.read('word/media/image1.gif') == b'GIF89a'
    types = etree.fromstring(store.read('[Content_Types].xml'))
    extensions = [d.get('Extension').lower() for d in types.findall(f'{CT}Default')]
    assert extensions.count('gif') == 1
    assert extensions.count('rels') == 1
    print("PASS: test_flush_creates_part_relationships")


# ---------------------------------------------------------------------------
# Store and entry points
# ---------------------------------------------------------------------------

def test_document_parts_order():
    store = PackageStore({
        name: (None, b'')
        for name in ['word/header10.xml', 'word/document.xml', 'word/footer1.xml', 'word/header2.xml', 'word/styles.xml']
    })
    assert document_parts(store) == ['word/document.xml', 'word/footer1.xml', 'word/header2.xml', 'word/header10.xml']
    print("PASS: test_document_parts_order")


def test_open_errors():
    try:
        PackageStore.open('/nonexistent/template.docx')
    except InputNotFound:
        pass
    else:
        raise AssertionError("expected InputNotFound")

    try:
        fill_stream(b'not a zip archive', {})
    except PackageOpenFailed:
        pass
    else:
        raise AssertionError("expected PackageOpenFailed")

    try:
        fill_stream(_zip_bytes({'[Content_Types].xml': TYPES_XML}), {})
    except RequiredPartMissing as e:
        assert 'word/document.xml' in str(e)
    else:
        raise AssertionError("expected RequiredPartMissing")

    broken = _zip_bytes({
        '[Content_Types].xml': TYPES_XML,
        'word/_rels/document.xml.rels': RELS_XML,
        'word/document.xml': b'<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main"><w:body>',
    })
    try:
        fill_stream(broken, {})
    except XmlParseFailed as e:
        assert 'word/document.xml' in str(e)
    else:
        raise AssertionError("expected XmlParseFailed")
    print("PASS: test_open_errors")


def test_fill_template_writes_new_file_only():
    with tempfile.TemporaryDirectory() as tmp:
        template = os.path.join(tmp, 'template.docx')
        with open(template, 'wb') as f:
            f.write(_docx_bytes("Hello %*name*%"))
        with open(template, 'rb') as f:
            original = f.read()

        output = os.path.join(tmp, 'out.docx')
        report = fill_template(template, output, {"name": "Alice"})

        with open(template, 'rb') as f:
            assert f.read() == original
        assert sorted(os.listdir(tmp)) == ['out.docx', 'template.docx']
        assert report.changed_parts == ['word/document.xml']

        with zipfile.ZipFile(template) as a, zipfile.ZipFile(output) as b:
            assert a.namelist() == b.namelist()
            for name in a.namelist():
                if name != 'word/document.xml':
                    assert a.read(name) == b.read(name), name
            assert b'Hello Alice' in b.read('word/document.xml')
    print("PASS: test_fill_template_writes_new_file_only")


def test_list_placeholders():
    doc = Document()
    doc.add_paragraph("%*a*% and %* b *%")
    p = doc.add_paragraph()
    p.add_run("%*spl")
    p.add_run("it*%")
    doc.add_paragraph("%*unterminated")
    doc.add_paragraph("again %*a*%")
    run = doc.add_paragraph().add_run("Line one")
    run.add_break()
    run.add_text("%*afterBreak*%")
    doc.sections[0].header.paragraphs[0].add_run("%*headerField*%")

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, 'template.docx')
        doc.save(path)
        assert list_placeholders(path) == ["a", "b", "split", "afterBreak", "headerField"]
    print("PASS: test_list_placeholders")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _run_cli(*argv):
    saved = sys.argv
    sys.argv = ['docfill', *argv]
    out = StringIO()
    try:
        with redirect_stdout(out):
            cli.main()
    finally:
        sys.argv = saved
    return out.getvalue()


def test_cli_fill_and_scan():
    with tempfile.TemporaryDirectory() as tmp:
        template = os.path.join(tmp, 'template.docx')
        with open(template, 'wb') as f:
            f.write(_docx_bytes("Dear %*name*%", "Items: %*items*%"))
        values = os.path.join(tmp, 'values.json')
        with open(values, 'w', encoding='utf-8') as f:
            json.dump({"name": "Alice", "items": [["A", "B"]]}, f)

        assert json.loads(_run_cli('scan', template, '--json')) == ['name', 'items']

        output = os.path.join(tmp, 'filled.docx')
        _run_cli('fill', template, values, '-o', output)
        assert os.path.exists(output)
        assert list_placeholders(output) == []

        default_output = os.path.join(tmp, 'template_filled.docx')
        _run_cli('fill', template, values, '--plain-tables')
        assert os.path.exists(default_output)
    print("PASS: test_cli_fill_and_scan")


def test_cli_exits_on_error():
    with tempfile.TemporaryDirectory() as tmp:
        values = os.path.join(tmp, 'values.json')
        with open(values, 'w', encoding='utf-8') as f:
            json.dump({}, f)
        try:
            _run_cli('fill', os.path.join(tmp, 'missing.docx'), values)
        except SystemExit as e:
            assert e.code == 1
        else:
            raise AssertionError("expected SystemExit")
    print("PASS: test_cli_exits_on_error")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_rels_part_name,
        test_content_type_lookup,
        test_content_type_defaults_are_not_duplicated,
        test_relationship_id_skips_existing,
        test_media_names_avoid_existing_entries,
        test_drawing_ids_continue_after_existing,
        test_flush_checks_media_before_writing,
        test_flush_creates_part_relationships,
        test_document_parts_order,
        test_open_errors,
        test_fill_template_writes_new_file_only,
        test_list_placeholders,
        test_cli_fill_and_scan,
        test_cli_exits_on_error,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            passed += 1
        except Exception as e:
            print(f"FAIL: {t.__name__} — {e}")
            failed += 1

    print(f"\n{'=' * 50}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed > 0:
        sys.exit(1)
    else:
        print("All tests passed!")
