"""
Shared pytest fixtures and configuration for SafetySpeak tests
"""
import sys
import tempfile
from pathlib import Path

import pytest
from docx import Document
from ebooklib import epub

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from safetyspeak.config import PipelineConfig

from fakes import FakeGateway, FakeOutput, ManualClock


BRIEFING_TEXT = "작업 전 안전모와 안전대를 반드시 착용하십시오. 개구부 주변에서는 추락에 주의하십시오."


@pytest.fixture
def temp_dir():
    """Temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fast_config():
    """Pipeline config without the fixed delays"""
    return PipelineConfig(inter_item_delay=0, passthrough_delay=0)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fake_output():
    return FakeOutput()


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def briefing_txt(temp_dir):
    """UTF-8 text briefing"""
    path = temp_dir / 'briefing.txt'
    path.write_text(BRIEFING_TEXT, encoding='utf-8')
    return path


@pytest.fixture
def briefing_docx(temp_dir):
    """Word briefing with a paragraph and a checklist table"""
    document = Document()
    document.add_heading('TBM 안전교육', level=1)
    document.add_paragraph(BRIEFING_TEXT)
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = '점검 항목'
    table.cell(0, 1).text = '확인'
    table.cell(1, 0).text = '안전대 체결'
    table.cell(1, 1).text = '예'

    path = temp_dir / 'briefing.docx'
    document.save(str(path))
    return path


@pytest.fixture
def briefing_epub(temp_dir):
    """EPUB briefing with two chapters"""
    book = epub.EpubBook()

    # Metadata
    book.set_identifier('safety-briefing-001')
    book.set_title('Safety Briefing')
    book.set_language('ko')
    book.add_author('Site Safety Office')

    c1 = epub.EpubHtml(title='Fall Protection', file_name='chapter1.xhtml', lang='ko')
    c1.content = '<html><body><h1>추락 방지</h1><p>안전대를 체결하십시오.</p></body></html>'
    c2 = epub.EpubHtml(title='Fire Safety', file_name='chapter2.xhtml', lang='ko')
    c2.content = '<html><body><h1>화재 예방</h1><p>용접 작업 시 소화기를 비치하십시오.</p></body></html>'

    book.add_item(c1)
    book.add_item(c2)
    book.toc = (
        epub.Link('chapter1.xhtml', 'Fall Protection', 'ch1'),
        epub.Link('chapter2.xhtml', 'Fire Safety', 'ch2'),
    )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ['nav', c1, c2]

    # Write to temp directory
    epub_path = temp_dir / 'briefing.epub'
    epub.write_epub(str(epub_path), book)

    return epub_path
