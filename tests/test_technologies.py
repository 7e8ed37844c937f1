from sitelens.technologies import (
    CURRENT_VERSIONS,
    TechnologyDetector,
    TechnologySignature,
    detect_technologies,
    text,
)

PAGE = """<html><head>
<script src="https://code.jquery.com/jquery-3.4.1.min.js"></script>
</head><body><div id="__next"></div></body></html>"""


def _names(technologies):
    return [tech.name for tech in technologies]


def test_detects_libraries_and_versions():
    technologies = detect_technologies(PAGE)
    by_name = {tech.name: tech for tech in technologies}

    assert "jQuery" in by_name
    assert "Next.js" in by_name
    assert by_name["jQuery"].version == "3.4.1"
    assert by_name["jQuery"].current_version == CURRENT_VERSIONS["jQuery"]


def test_detection_is_sorted_and_idempotent():
    first = detect_technologies(PAGE)
    second = detect_technologies(PAGE)
    assert _names(first) == sorted(_names(first))
    assert first == second


def test_plain_english_words_do_not_trigger_signatures():
    html = "<p>We view every next step with less worry and express our thanks.</p>"
    names = _names(detect_technologies(html))
    assert "Vue.js" not in names
    assert "Next.js" not in names
    assert "LESS" not in names
    assert "Node.js/Express" not in names


def test_generic_version_lookup_uses_clean_name():
    html = '<script src="/vendor/chart.js"></script><!-- chartjs 4.2.1 -->'
    by_name = {tech.name: tech for tech in detect_technologies(html)}
    assert by_name["Chart.js"].version == "4.2.1"


def test_unversioned_technology_has_no_version():
    by_name = {tech.name: tech for tech in detect_technologies("<script>jQuery(function(){})</script>")}
    assert by_name["jQuery"].version is None


def test_empty_page_detects_nothing():
    assert detect_technologies("") == []


def test_custom_signature_table():
    detector = TechnologyDetector(
        signatures=[TechnologySignature("Alpine.js", text("x-data="))],
        version_extractors={},
        current_versions={"Alpine.js": "3.13.0"},
    )
    found = detector.detect('<div x-data="{ open: false }"></div>')
    assert _names(found) == ["Alpine.js"]
    assert found[0].current_version == "3.13.0"
