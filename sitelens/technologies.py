"""Technology fingerprinting over a single page's HTML and DOM."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from .models import DetectedTechnology

VERSION_NUMBER = re.compile(r"\d+\.\d+\.\d+|\d+\.\d+")


@dataclass
class PageEvidence:
    html_lower: str
    soup: BeautifulSoup
    script_srcs: List[str]
    link_hrefs: List[str]
    generator: str

    @classmethod
    def from_html(cls, html: str, soup: Optional[BeautifulSoup] = None) -> "PageEvidence":
        soup = soup if soup is not None else BeautifulSoup(html or "", "html.parser")
        generator_tag = soup.find("meta", attrs={"name": "generator"})
        generator = generator_tag.get("content", "") if generator_tag else ""
        return cls(
            html_lower=(html or "").lower(),
            soup=soup,
            script_srcs=[str(tag.get("src", "")).lower() for tag in soup.find_all("script", src=True)],
            link_hrefs=[str(tag.get("href", "")).lower() for tag in soup.find_all("link", href=True)],
            generator=str(generator).lower(),
        )


Rule = Callable[[PageEvidence], bool]


def text(*needles: str) -> Rule:
    return lambda ev: any(needle in ev.html_lower for needle in needles)


def selector(css: str) -> Rule:
    return lambda ev: ev.soup.select_one(css) is not None


def script_src(needle: str) -> Rule:
    return lambda ev: any(needle in src for src in ev.script_srcs)


def link_href(*needles: str) -> Rule:
    return lambda ev: any(needle in href for href in ev.link_hrefs for needle in needles)


def generator(needle: str) -> Rule:
    return lambda ev: needle in ev.generator


def any_of(*rules: Rule) -> Rule:
    return lambda ev: any(rule(ev) for rule in rules)


@dataclass(frozen=True)
class TechnologySignature:
    name: str
    rule: Rule


DEFAULT_SIGNATURES: Tuple[TechnologySignature, ...] = (
    # JavaScript frameworks and libraries
    TechnologySignature("React", any_of(text("react"), selector("[data-reactroot], [data-react]"), script_src("react"))),
    TechnologySignature("Vue.js", any_of(text("vue.js", "vue.min.js", "vue@", "data-v-app"), selector("#app[data-v-app]"), script_src("vue"))),
    TechnologySignature("Angular", any_of(text("angular", "ng-app"), script_src("angular"))),
    TechnologySignature("Svelte", any_of(text("svelte"), selector("[data-svelte]"), script_src("svelte"))),
    TechnologySignature("Ember.js", any_of(text("ember.js", "ember.min.js", "ember-application"), script_src("ember"))),
    TechnologySignature("Backbone.js", any_of(text("backbone.js", "backbone-min", "backbone.min"), script_src("backbone"))),
    TechnologySignature("jQuery", text("jquery")),
    TechnologySignature("jQuery UI", any_of(text("jquery-ui", "jquery.ui", "jqueryui"), script_src("jquery-ui"))),
    TechnologySignature("Moment.js", any_of(text("moment.js", "moment.min.js", "moment-with-locales"), script_src("moment"))),
    TechnologySignature("Lodash", any_of(text("lodash"), script_src("lodash"))),
    TechnologySignature("Bootstrap", any_of(text("bootstrap"), selector(".container-fluid"), link_href("bootstrap"))),
    TechnologySignature("Tailwind CSS", any_of(text("tailwind"), selector('[class*="tw-"]'))),
    TechnologySignature("Bulma", any_of(text("bulma"), selector(".is-primary"))),
    TechnologySignature("Foundation", any_of(text("foundation.min", "foundation.css", "foundation.js"), selector("[data-sticky]"))),
    TechnologySignature("Semantic UI", any_of(text("semantic-ui"), selector(".ui.segment"))),
    # Meta frameworks and bundlers
    TechnologySignature("Next.js", any_of(selector("#__next"), text("/_next/", "__next_data__"))),
    TechnologySignature("Nuxt.js", any_of(text("nuxt"), selector("[data-n-head]"))),
    TechnologySignature("Gatsby", any_of(text("gatsby"), selector("[data-gatsby]"))),
    TechnologySignature("Vite", any_of(text("/@vite", "vite/client", "vite.svg"), selector("[data-vite-plugin]"))),
    TechnologySignature("Webpack", any_of(text("webpack"), script_src("webpack"))),
    TechnologySignature("Rollup", any_of(text("rollup"), script_src("rollup"))),
    # CMS and hosted platforms
    TechnologySignature("WordPress", any_of(generator("wordpress"), text("wp-content", "wordpress"))),
    TechnologySignature("Shopify", any_of(generator("shopify"), text("shopify"))),
    TechnologySignature("Drupal", any_of(generator("drupal"), text("drupal"))),
    TechnologySignature("Joomla", any_of(generator("joomla"), text("joomla"))),
    TechnologySignature("Magento", any_of(generator("magento"), text("magento"))),
    TechnologySignature("Docusaurus", text("docusaurus")),
    TechnologySignature("Notion", text("notion.so", "notion-static")),
    TechnologySignature("Wix", text("wixstatic", "wix.com")),
    TechnologySignature("Squarespace", text("squarespace")),
    # Server side languages and frameworks
    TechnologySignature("PHP", any_of(text("php"), generator("php"))),
    TechnologySignature("ASP.NET", any_of(text("asp.net", ".aspx", "__viewstate"), generator("asp.net"))),
    TechnologySignature("Django", text("django", "csrfmiddlewaretoken")),
    TechnologySignature("Flask", text("flask")),
    TechnologySignature("Ruby on Rails", text("ruby on rails", "rails-ujs", "csrf-token")),
    TechnologySignature("Node.js/Express", text("node.js", "nodejs", "express.js", "expressjs")),
    TechnologySignature("Laravel", text("laravel")),
    TechnologySignature("Spring", text("spring boot", "springframework")),
    TechnologySignature("FastAPI", text("fastapi", "swagger-ui")),
    # Data backends visible from the front end
    TechnologySignature("MongoDB", any_of(text("mongodb"), script_src("mongodb"))),
    TechnologySignature("Firebase", text("firebase")),
    TechnologySignature("Supabase", text("supabase")),
    # UI and visualisation libraries
    TechnologySignature("Animate.css", any_of(text("animate.css", "aos.css", "aos.js", "data-aos"), link_href("animate"))),
    TechnologySignature("Slider/Carousel", text("swiper", "slick")),
    TechnologySignature("Chart.js", any_of(text("chart.js"), script_src("chart"))),
    TechnologySignature("D3.js", any_of(text("d3.js", "d3.min.js", "d3.v"), script_src("/d3"))),
    # Analytics, marketing and payments
    TechnologySignature("Google Analytics", text("google-analytics", "gtag(", "googletagmanager")),
    TechnologySignature("Facebook Pixel", text("connect.facebook.net", "fbq(")),
    TechnologySignature("HubSpot", text("hubspot", "hs-scripts", "hs-analytics")),
    TechnologySignature("Mailchimp", text("mailchimp", "mc-embedded", "list-manage.com")),
    TechnologySignature("Stripe", text("js.stripe.com", "stripe.com", "stripe-button", "stripe-checkout")),
    TechnologySignature("PayPal", text("paypal")),
    # Build and styling toolchain
    TechnologySignature("TypeScript", any_of(text("typescript"), script_src("typescript"))),
    TechnologySignature("SASS/SCSS", any_of(text("sass", "scss"), link_href("sass", "scss"))),
    TechnologySignature("LESS", any_of(text("less.js", "less.min.js", ".less\""), link_href(".less"))),
    TechnologySignature("PostCSS", any_of(text("postcss"), link_href("postcss"))),
)

CURRENT_VERSIONS: Dict[str, str] = {
    "React": "18.2.0",
    "Vue.js": "3.3.0",
    "Angular": "17.1.0",
    "Svelte": "4.2.0",
    "Ember.js": "5.0.0",
    "Backbone.js": "1.4.1",
    "jQuery": "3.7.1",
    "jQuery UI": "1.13.2",
    "Moment.js": "2.29.4",
    "Lodash": "4.17.21",
    "Bootstrap": "5.3.0",
    "Tailwind CSS": "3.4.0",
    "Bulma": "0.9.4",
    "Foundation": "6.8.1",
    "Semantic UI": "2.5.0",
    "Next.js": "14.1.0",
    "Nuxt.js": "3.8.0",
    "Gatsby": "5.12.0",
    "Vite": "5.1.0",
    "Webpack": "5.89.0",
    "Rollup": "4.9.0",
    "WordPress": "6.4.0",
    "Shopify": "2024-01",
    "Drupal": "10.3.0",
    "Joomla": "5.0.0",
    "Magento": "2.4.7",
    "PHP": "8.3.0",
    "ASP.NET": "8.0.0",
    "Django": "4.2.7",
    "Flask": "3.0.0",
    "Ruby on Rails": "7.1.0",
    "Node.js/Express": "21.5.0",
    "Laravel": "11.0.0",
    "Spring": "3.2.0",
    "FastAPI": "0.109.0",
    "MongoDB": "7.0.0",
    "Firebase": "10.7.0",
    "Supabase": "2.37.0",
    "TypeScript": "5.3.0",
    "SASS/SCSS": "1.69.0",
    "LESS": "4.2.0",
    "PostCSS": "8.4.0",
    "Chart.js": "4.4.0",
    "D3.js": "7.8.0",
}

VersionExtractor = Callable[[str], Optional[str]]


def pattern_extractor(pattern: str) -> VersionExtractor:
    """Version from the first match of ``pattern`` that carries a dotted number."""
    compiled = re.compile(pattern)

    def extract(html_lower: str) -> Optional[str]:
        for match in compiled.finditer(html_lower):
            version = VERSION_NUMBER.search(match.group(0))
            if version:
                return version.group(0)
        return None

    return extract


def _clean_name(name: str) -> str:
    return re.sub(r"[^a-z]", "", name.lower())


def generic_extractor(name: str) -> VersionExtractor:
    clean = _clean_name(name)
    compiled = re.compile(re.escape(clean) + r"[.\-@_\s]*v?(\d+\.\d+(?:\.\d+)?)")

    def extract(html_lower: str) -> Optional[str]:
        if not clean or clean not in html_lower:
            return None
        match = compiled.search(html_lower)
        return match.group(1) if match else None

    return extract


def _extractors(*patterns: str) -> Tuple[VersionExtractor, ...]:
    return tuple(pattern_extractor(pattern) for pattern in patterns)


DEFAULT_VERSION_EXTRACTORS: Dict[str, Tuple[VersionExtractor, ...]] = {
    "React": _extractors(
        r"react[.\-]?\d+\.\d+\.\d+",
        r"react[-_]\d+\.\d+\.\d+",
        r"react[.\-]\d+\.\d+",
        r"react[-_]\d+\.\d+",
        r"react\.version[.\-]?\d+\.\d+\.\d+",
        r"react-dom@\d+\.\d+\.\d+",
        r"react[.\-]version[:\s]*['\"]?\d+\.\d+\.\d+",
        r"react[.\-]v\d+\.\d+\.\d+",
    ),
    "jQuery": _extractors(
        r"jquery[.\-]?\d+\.\d+\.\d+",
        r"jquery[.\-]?\d+\.\d+",
        r"jquery[.\-]v\d+\.\d+\.\d+",
        r"jquery[.\-]v\d+\.\d+",
        r"jquery[.\-]version[.\-]?\d+\.\d+\.\d+",
        r"jquery/\d+\.\d+\.\d+",
    ),
    "jQuery UI": _extractors(
        r"jquery[.\-]ui[.\-@]?v?\d+\.\d+(?:\.\d+)?",
        r"jqueryui/\d+\.\d+\.\d+",
    ),
    "Moment.js": _extractors(r"moment(?:\.js)?[/@\-.]v?\d+\.\d+\.\d+"),
    "Lodash": _extractors(r"lodash(?:\.js)?[/@\-.]v?\d+\.\d+\.\d+"),
    "Bootstrap": _extractors(
        r"bootstrap[.\-@]?\d+\.\d+\.\d+",
        r"bootstrap[.\-@]?\d+\.\d+",
        r"bootstrap[.\-]v\d+\.\d+\.\d+",
        r"bootstrap[.\-]version[.\-]?\d+\.\d+\.\d+",
        r"bootstrap/\d+\.\d+\.\d+",
    ),
    "Vue.js": _extractors(
        r"vue[.\-@]?\d+\.\d+\.\d+",
        r"vue[.\-@]?\d+\.\d+",
        r"vue[.\-]v\d+\.\d+\.\d+",
        r"vue[.\-]version[.\-]?\d+\.\d+\.\d+",
    ),
    "Angular": _extractors(
        r"@angular[./]core[.\-@]?\d+\.\d+\.\d+",
        r"@angular[./]cli[.\-@]?\d+\.\d+\.\d+",
        r"angular[.\-]v?\d+\.\d+\.\d+",
        r"ng[.\-]version[:\s]*['\"]?\d+\.\d+\.\d+",
    ),
    "TypeScript": _extractors(
        r"typescript[.\-@]?\d+\.\d+\.\d+",
        r"typescript[.\-@]?\d+\.\d+",
        r"ts[.\-@]?\d+\.\d+\.\d+",
    ),
    "Node.js/Express": _extractors(
        r"node[.\-]?\d+\.\d+\.\d+",
        r"nodejs[.\-]?\d+\.\d+\.\d+",
        r"express[.\-@]?\d+\.\d+\.\d+",
    ),
}


class TechnologyDetector:
    def __init__(
        self,
        signatures: Sequence[TechnologySignature] = DEFAULT_SIGNATURES,
        version_extractors: Mapping[str, Sequence[VersionExtractor]] = DEFAULT_VERSION_EXTRACTORS,
        current_versions: Mapping[str, str] = CURRENT_VERSIONS,
    ) -> None:
        self.signatures = tuple(signatures)
        self.version_extractors = dict(version_extractors)
        self.current_versions = dict(current_versions)

    def detect(self, html: str, soup: Optional[BeautifulSoup] = None) -> List[DetectedTechnology]:
        evidence = PageEvidence.from_html(html, soup)
        names = {signature.name for signature in self.signatures if signature.rule(evidence)}
        return [
            DetectedTechnology(
                name=name,
                version=self.extract_version(evidence.html_lower, name),
                current_version=self.current_versions.get(name),
            )
            for name in sorted(names)
        ]

    def extract_version(self, html_lower: str, name: str) -> Optional[str]:
        extractors = self.version_extractors.get(name)
        if extractors is None:
            extractors = (generic_extractor(name),)
        for extract in extractors:
            version = extract(html_lower)
            if version:
                return version
        return None


_DEFAULT_DETECTOR = TechnologyDetector()


def detect_technologies(html: str, soup: Optional[BeautifulSoup] = None) -> List[DetectedTechnology]:
    return _DEFAULT_DETECTOR.detect(html, soup)
