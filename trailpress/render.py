"""
HTML output: the per-track pages, the index and the shared stylesheet.

Built-in templates live here as strings; a ``data.templates`` directory can
override any of them by file name.
"""

from pathlib import Path

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, TemplateError
from loguru import logger

from .errors import FatalTrackError

# ---------------------------------------------------------------------------
# Shared CSS (written to static/style.css)
# ---------------------------------------------------------------------------

SHARED_CSS = """\
/* ── reset & base ── */
*, *::before, *::after { box-sizing: border-box; }
body {
  margin: 0; padding: 24px;
  font-family: "Inter", "SF Pro Text", system-ui, -apple-system, sans-serif;
  font-size: 15px; line-height: 1.6;
  background: #0e0e0e; color: #c8c8c8;
  -webkit-font-smoothing: antialiased;
}
a { color: #7db8e0; text-decoration: none; transition: color 0.15s; }
a:hover { color: #aed4f0; }
h1 { font-size: 1.5em; font-weight: 500; letter-spacing: -0.01em; margin: 0 0 4px; }
.subtitle { font-size: 0.88em; color: #777; margin-bottom: 24px; line-height: 1.5; }

/* ── article list on index ── */
.articles { list-style: none; margin: 0; padding: 0; }
.articles li { padding: 10px 0; border-bottom: 1px solid #1a1a1a; }
.articles .date, .articles .place, .articles .count { color: #666; font-size: 0.88em; margin-left: 8px; }

/* ── track page ── */
.track-page { max-width: 1200px; margin: 0 auto; }
.nav {
  margin-bottom: 20px; padding-bottom: 12px;
  border-bottom: 1px solid #1a1a1a; font-size: 0.88em;
}
.nav a { color: #666; }
.nav a:hover { color: #aaa; }
#map { height: 420px; margin: 20px 0; border-radius: 3px; }
.meta { font-size: 0.82em; color: #777; line-height: 1.6; }

/* ── photo grid ── */
.grid {
  display: grid;
  grid-template-columns: repeat(auto-fill, minmax(160px, 1fr));
  gap: 3px;
}
.grid a { display: block; aspect-ratio: 1; overflow: hidden; border-radius: 2px; }
.grid img {
  width: 100%; height: 100%; object-fit: cover; display: block;
  transition: transform 0.25s ease, filter 0.25s ease;
}
.grid a:hover img { transform: scale(1.05); filter: brightness(1.15); }

@media (max-width: 640px) {
  body { padding: 14px; }
  h1 { font-size: 1.3em; }
  .grid { grid-template-columns: repeat(auto-fill, minmax(110px, 1fr)); gap: 2px; }
  #map { height: 280px; }
}
"""

INDEX_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ config.site.name }}</title>
<meta name="description" content="{{ config.site.description }}">
<link rel="stylesheet" href="{{ static_dir }}/style.css">
</head>
<body>
<h1>{{ config.site.name }}</h1>
<p class="subtitle">{{ config.site.description }} &middot; {{ articles|length }} outings</p>
<ul class="articles">
{% for article in articles %}<li><a href="{{ article.url }}">{{ article.title }}</a><span class="date">{{ article.start_time.strftime("%Y-%m-%d") }}</span>{% if article.place_name %}<span class="place">{{ article.place_name }}</span>{% endif %}<span class="count">{{ article.photo_count }} photos</span></li>
{% endfor %}
</ul>
</body>
</html>
"""

TRACK_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title }} — {{ config.site.name }}</title>
<link rel="stylesheet" href="{{ static_dir }}/style.css">
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
</head>
<body class="track-page">
<div class="nav"><a href="../index.html">&larr; all outings</a></div>
<h1>{{ title }}</h1>
<div class="meta">
  {{ start_time }} &ndash; {{ end_time }} &middot; {{ duration }} &middot; {{ "%.1f"|format(distance_km) }} km
  {% if place_name %}&middot; {{ place_name }}{% endif %}
</div>
<div id="map"></div>
<script>
var map = L.map('map').setView([{{ lat_avg }}, {{ lon_avg }}], 12);
L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
  attribution: '&copy; OpenStreetMap contributors'
}).addTo(map);
var route = L.polyline({{ route|tojson }}, {color: '#7db8e0'}).addTo(map);
map.fitBounds(route.getBounds());
</script>
<div class="grid">
{% for photo in copied_photos %}<a href="../{{ photo_dir }}/{{ photo }}"><img src="../{{ photo_dir }}/thumbnails/{{ photo }}" alt="" loading="lazy"></a>
{% endfor %}
</div>
</body>
</html>
"""

BUILTIN_TEMPLATES = {
    "index.html": INDEX_TEMPLATE,
    "track.html": TRACK_TEMPLATE,
}


class Renderer:
    def __init__(self, template_dir: Path | None = None):
        loaders = [DictLoader(BUILTIN_TEMPLATES)]
        if template_dir is not None:
            # User templates win over the built-in ones
            loaders.insert(0, FileSystemLoader(str(template_dir)))
        self.env = Environment(loader=ChoiceLoader(loaders), autoescape=True)

    def render_page(self, name: str, context: dict, target: Path):
        """Render template name with context into target (UTF-8)."""
        html = self.env.get_template(name).render(**context)
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(html, encoding="utf-8")

    def render_track(self, context: dict, target: Path, source: Path):
        try:
            self.render_page("track.html", context, target)
        except (TemplateError, OSError) as e:
            raise FatalTrackError(source, f"cannot render {target.name}: {e}") from e

    def write_assets(self, site_output: Path):
        static_dir = Path(site_output) / "static"
        static_dir.mkdir(parents=True, exist_ok=True)
        (static_dir / "style.css").write_text(SHARED_CSS, encoding="utf-8")
        logger.debug("Wrote static/style.css")
