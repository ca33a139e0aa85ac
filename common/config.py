from __future__ import annotations

import os
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "config.yaml"


class AppConfig(BaseModel):
    data_dir: Path = Path("data/newsletters")
    cache_dir: Path = Path("data/cache")
    file_patterns: List[str] = ["*.htm", "*.html"]
    markup_parser: str = Field(default="html.parser", pattern="^(html.parser|lxml|html5lib)$")


class EncodingConfig(BaseModel):
    probe_bytes: int = 1024
    min_zero_bytes: int = 50


class ExtractionConfig(BaseModel):
    start_anchors: List[str] = [
        "#idHeader_Additional",
        "#nlHeader",
        "#idSortable",
        'table.MsoNormalTable[width="100%"][style*="background:whitesmoke"]',
    ]
    forbid_tags: List[str] = ["script", "iframe", "object", "embed", "link", "meta", "style"]
    forbid_attrs: List[str] = ["onload", "onclick", "onerror"]
    # Dropped with their content; tags outside allowed_tags are unwrapped instead
    drop_tags: List[str] = [
        "base", "head", "title", "svg", "math", "template", "noscript",
        "frame", "frameset", "applet", "textarea", "select", "button",
    ]
    allowed_tags: List[str] = [
        "a", "abbr", "b", "big", "blockquote", "br", "caption", "center", "cite",
        "code", "col", "colgroup", "dd", "del", "div", "dl", "dt", "em", "figcaption",
        "figure", "font", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "ins",
        "li", "mark", "ol", "p", "pre", "s", "small", "span", "strike", "strong",
        "sub", "sup", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
    ]
    allowed_attrs: List[str] = [
        "align", "alt", "bgcolor", "border", "cellpadding", "cellspacing", "class",
        "color", "colspan", "dir", "face", "headers", "height", "href", "id", "lang",
        "name", "rel", "rowspan", "scope", "size", "span", "src", "start", "style",
        "target", "title", "type", "valign", "width",
    ]
    url_attrs: List[str] = ["href", "src"]
    allowed_url_schemes: List[str] = ["http", "https", "mailto", "tel", "cid"]
    heading_tags: List[str] = ["h1", "h2", "h3", "h4"]


class SectionsConfig(BaseModel):
    chapter_prefix: str = "chapter_"
    header_styles: List[str] = ["color:#0a8276", "#0a8276", "font-size:13.5pt"]
    max_title_chars: int = 80


class ExcerptConfig(BaseModel):
    max_chars: int = 200
    min_paragraph_chars: int = 40
    min_letter_ratio: float = 0.5


class SearchConfig(BaseModel):
    context_chars: int = 160
    dedup_key_chars: int = 160
    max_title_chars: int = 80


class DatesConfig(BaseModel):
    max_month_year_distance: int = 400


class CatalogConfig(BaseModel):
    title_template: str = "Newsletter - {month} {year} edition"


class GlobalYAMLConfig(BaseModel):
    app: AppConfig = AppConfig()
    encoding: EncodingConfig = EncodingConfig()
    extraction: ExtractionConfig = ExtractionConfig()
    sections: SectionsConfig = SectionsConfig()
    excerpt: ExcerptConfig = ExcerptConfig()
    search: SearchConfig = SearchConfig()
    dates: DatesConfig = DatesConfig()
    catalog: CatalogConfig = CatalogConfig()


def load_yaml_config(path: Path | None = None) -> GlobalYAMLConfig:
    path = Path(path or os.getenv("NEWSLETTER_CONFIG") or DEFAULT_CONFIG_PATH)
    if not path.exists():
        return GlobalYAMLConfig()
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return GlobalYAMLConfig(**raw)


yaml_config = load_yaml_config()
