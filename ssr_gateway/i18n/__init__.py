from .localizer import Localizer, create_localizer, interpolate
from .resolver import match_locale, parse_accept_language, required_namespaces, resolve_locale
from .resources import ResourceCache, expand_load_path

__all__ = [
    "Localizer",
    "ResourceCache",
    "create_localizer",
    "expand_load_path",
    "interpolate",
    "match_locale",
    "parse_accept_language",
    "required_namespaces",
    "resolve_locale",
]
