from ingestion.sections import extract_sections

THREE_CHAPTERS = """<html><body>
<h2>AURIX</h2>
<p>Safety controllers for the next platform.</p>
<h2>TRAVEO</h2>
<p>Body and cluster updates.</p>
<h2>PSOC</h2>
<p>Touch sensing news.</p>
</body></html>"""

TABLE_LAYOUT = """<body>
<table><tr><td><span style="font-size:13.5pt;color:#0A8276">Success Stories</span></td></tr>
<tr><td>Story body</td></tr></table>
<table><tr><td><span style="color:#0A8276">Team News</span></td></tr>
<tr><td>Team body</td></tr></table>
</body>"""


def test_headings_become_sections():
    sections = extract_sections(THREE_CHAPTERS)
    assert [s.id for s in sections] == ["aurix", "traveo", "psoc"]
    assert [s.title for s in sections] == ["AURIX", "TRAVEO", "PSOC"]
    assert all(s.level == 2 for s in sections)
    assert sections[0].text == "AURIX Safety controllers for the next platform."
    assert "TRAVEO" not in sections[0].html
    assert sections[2].text == "PSOC Touch sensing news."


def test_section_ids_are_deterministic():
    first = extract_sections(THREE_CHAPTERS)
    second = extract_sections(THREE_CHAPTERS)
    assert [s.id for s in first] == [s.id for s in second]
    assert [s.html for s in first] == [s.html for s in second]


def test_duplicate_titles_get_unique_ids():
    html = "<body><h2>News</h2>\n<p>a</p>\n<h3>News</h3>\n<p>b</p>\n<h2>News</h2>\n<p>c</p></body>"
    sections = extract_sections(html)
    ids = [s.id for s in sections]
    assert ids == ["news", "news-2", "news-3"]
    assert [s.level for s in sections] == [2, 3, 2]
    assert len(set(ids)) == len(ids)


def test_table_rows_anchor_to_their_table():
    sections = extract_sections(TABLE_LAYOUT)
    assert [s.title for s in sections] == ["Success Stories", "Team News"]
    assert [s.id for s in sections] == ["success-stories", "team-news"]
    assert sections[0].html.startswith('<table id="success-stories">')
    assert "Story body" in sections[0].text
    assert "Team body" not in sections[0].text
    assert "Team body" in sections[1].text


def test_headings_in_one_table_are_deduplicated():
    html = (
        "<body><table><tr><td><h3>First</h3></td></tr><tr><td><h3>Second</h3></td></tr></table>"
        "\n<h2>After</h2></body>"
    )
    sections = extract_sections(html)
    assert [s.title for s in sections] == ["First", "After"]
    # the table gets its own id; "first" already belongs to the heading
    assert sections[0].id == "first-2"


def test_explicit_chapter_containers_are_authoritative():
    html = """<body>
<div id="chapter_1"><a title="AURIX™ Corner" href="#c1">more</a><p>one</p></div>
<h2>Ignored heading</h2>
<div id="Chapter_2"><p><b>Bulletin Board</b> stuff</p></div>
<div id="chapter_3">Plain lead clause. More text</div>
</body>"""
    sections = extract_sections(html)
    assert [s.id for s in sections] == ["chapter_1", "Chapter_2", "chapter_3"]
    assert [s.title for s in sections] == ["AURIX™ Corner", "Bulletin Board", "Plain lead clause"]
    assert all(s.level == 2 for s in sections)
    assert "one" in sections[0].text
    assert "Ignored heading" in sections[0].text
    assert "stuff" not in sections[0].text


def test_range_keeps_partial_ancestors():
    html = "<body><div>\n<h2>One</h2>\n<p>alpha</p>\n</div>\n<h2>Two</h2>\n<p>beta</p></body>"
    sections = extract_sections(html)
    assert [s.id for s in sections] == ["one", "two"]
    assert sections[0].html.startswith("<div>")
    assert "alpha" in sections[0].text and "beta" not in sections[0].text
    assert "alpha" not in sections[1].text


def test_sections_cover_body_in_order():
    sections = extract_sections(THREE_CHAPTERS)
    joined = " ".join(s.text for s in sections)
    assert joined.index("AURIX") < joined.index("TRAVEO") < joined.index("PSOC")
    assert joined.count("Touch sensing") == 1


def test_empty_titles_are_skipped():
    html = "<body><h2>  </h2><p>x</p>\n<h2>Real</h2>\n<p>y</p></body>"
    sections = extract_sections(html)
    assert [s.title for s in sections] == ["Real"]


def test_malformed_or_empty_markup_yields_no_sections():
    assert extract_sections("<<<>>> not <really html") == []
    assert extract_sections("") == []
    assert extract_sections(None) == []


def test_repeated_source_ids_are_made_unique():
    html = '<body><h2 id="news">AURIX</h2><p>a</p><h2 id="news">TRAVEO</h2><p>b</p></body>'
    sections = extract_sections(html)
    assert [s.id for s in sections] == ["news", "traveo"]
    assert sections[1].html.startswith('<h2 id="traveo">')
    assert "b" in sections[1].text


def test_styled_span_inside_heading_is_one_section():
    html = '<body><h2><span style="color:#0A8276">AURIX</span></h2><p>Safety news.</p></body>'
    sections = extract_sections(html)
    assert [(s.id, s.title, s.level) for s in sections] == [("aurix", "AURIX", 2)]
    assert sections[0].text == "AURIX Safety news."
