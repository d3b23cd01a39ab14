from pathlib import Path

from ingest.article_parser import parse_article_html

FIXTURES = Path(__file__).parent / "fixtures"


def load(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def test_article_page_metadata_and_clean_body():
    a = parse_article_html("https://rage.dk/musik/roskilde-udsolgt/", load("fixture-a.html"))

    assert a is not None
    assert a.title == "Roskilde Festival melder udsolgt for første gang i fem år"
    assert a.date == "2025-06-02T08:30:00+02:00"
    assert a.category == "Musik"
    assert a.image == "https://rage.dk/images/roskilde.jpg"
    assert a.body_text.startswith("Roskilde Festival melder udsolgt Roskilde Festival har mandag morgen")
    assert "over 180 navne" in a.body_text
    for noise in ("Del på Facebook", "Læs også", "Publikum foran", "Forside", "RAGE Magazine"):
        assert noise not in a.body_text
    assert len(a.excerpt.split()) == 25


def test_main_entry_page_with_author_and_json_ld():
    b = parse_article_html("https://rage.dk/serier/ny-serie/", load("fixture-b.html"))

    assert b is not None
    assert b.title == "Anmeldelse: Ny dansk serie rammer plet"
    assert b.author == "Sofie Holm"
    assert b.date == "2025-09-14T12:00:00+02:00"
    assert b.category is None
    assert "window.tracking" not in b.body_text
    assert "nordjyske landskab" in b.body_text


def test_json_ld_date_used_without_meta_or_time():
    html = """<html><head>
      <script type="application/ld+json">[{"@type": "WebPage"}, {"datePublished": "2025-01-02"}]</script>
    </head><body><article><p>Kort tekst om noget.</p></article></body></html>"""
    a = parse_article_html("https://rage.dk/x/", html)
    assert a.date == "2025-01-02"
    assert a.title is None


def test_page_without_text_or_with_bad_url_is_rejected():
    assert parse_article_html("https://rage.dk/tom/", "<html><body><article> </article></body></html>") is None
    assert parse_article_html("ftp://rage.dk/x", "<html><body><p>tekst</p></body></html>") is None
