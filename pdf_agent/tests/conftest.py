import fitz
import pytest

from pdf_agent.domain.documents import Document, StoredObject
from pdf_agent.tools.context import ToolContext


class MemoryStorage:
    def __init__(self):
        self.objects = {}

    def put(self, session_id, filename, data, content_type="application/pdf"):
        key = f"sessions/{session_id}/{filename}"
        url = f"mem://{key}"
        self.objects[url] = data
        return StoredObject(key=key, url=url)

    def fetch(self, url):
        return self.objects[url]


def make_pdf(pages=3, with_text=True, dark=False):
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=612, height=792)
        if dark:
            page.draw_rect(page.rect, color=None, fill=(0, 0, 0))
        if with_text:
            page.insert_text((72, 72), f"Page {i + 1}", fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def page_texts(data):
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return [p.get_text().strip() for p in doc]
    finally:
        doc.close()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def make_context(storage):
    def _make(pages=5, with_text=True, dark=False, extra_docs=(), **kwargs):
        url = "mem://uploads/doc1.pdf"
        storage.objects[url] = make_pdf(pages, with_text=with_text, dark=dark)
        docs = [Document(id="doc1", name="report.pdf", url=url, kind="original", pages=str(pages))]
        docs.extend(extra_docs)
        return ToolContext(documents=docs, session_id="a" * 32, storage=storage, **kwargs)

    return _make
